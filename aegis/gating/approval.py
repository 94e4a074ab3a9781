"""Human-approval gate and its pending-action lifecycle."""
from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Callable, Literal

from ..config import ApprovalConfig
from ..errors import DuplicateActionError
from ..interfaces.registry import PendingActionRegistry
from ..models import ActionProposal, PendingAction

logger = logging.getLogger(__name__)

Decision = Literal["approved", "rejected"]

APPROVAL_NEEDED = "APPROVAL_NEEDED"
APPROVED = "APPROVED"
REJECTED = "REJECTED"


def _now_ms(clock: Callable[[], float]) -> int:
    return int(clock() * 1000)


class ApprovalGate:
    """Decides whether an action needs a human and tracks the answer.

    Records live in the registry until resolved or expired. Resolution is
    compare-and-delete: the first resolver wins, later or unknown ids are a
    quiet not-found.
    """

    def __init__(
        self,
        registry: PendingActionRegistry,
        config: ApprovalConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._config = config
        self._clock = clock

    @property
    def threshold(self) -> float:
        return self._config.human_approval_threshold

    async def evaluate(self, action: ActionProposal) -> bool:
        """Return True when ``action`` must wait for human sign-off.

        Raises:
            DuplicateActionError: An action with the same id is already pending.
        """
        if action.estimated_value < self._config.human_approval_threshold:
            logger.info(
                "Auto-approved %s (%s) — $%.2f below $%.2f threshold",
                action.id,
                action.type,
                action.estimated_value,
                self._config.human_approval_threshold,
            )
            return False

        pending = PendingAction(
            id=action.id,
            type=action.type,
            estimated_value=action.estimated_value,
            description=action.description,
            payload=action.payload,
            created_at=self._clock(),
            ttl=self._config.pending_ttl_seconds,
        )
        if not await self._registry.insert_if_absent(pending):
            raise DuplicateActionError(f"Pending action {action.id} already exists")

        await self._registry.publish(
            {
                "type": APPROVAL_NEEDED,
                "actionId": action.id,
                "action": pending.to_wire(),
                "timestamp": _now_ms(self._clock),
            }
        )
        logger.info(
            "Approval required for %s (%s) — $%.2f, expires in %ds",
            action.id,
            action.type,
            action.estimated_value,
            pending.ttl,
        )
        return True

    async def resolve(
        self, action_id: str, decision: Decision, payload: dict[str, Any] | None = None
    ) -> PendingAction | None:
        """Resolve a pending action once.

        Returns the resolved record, or None if the id is unknown, already
        resolved or expired.
        """
        record = await self._registry.compare_and_delete(action_id)
        if record is None:
            logger.warning("Resolve %s → %s: action not found", action_id, decision)
            return None

        resolved = replace(record, status=decision)
        message: dict[str, Any] = {
            "type": APPROVED if decision == "approved" else REJECTED,
            "actionId": action_id,
            "timestamp": _now_ms(self._clock),
        }
        if decision == "approved":
            message["action"] = resolved.to_wire()
            message["payload"] = payload or {}
        await self._registry.publish(message)

        logger.info("Pending action %s %s", action_id, decision)
        return resolved

    async def approve(
        self, action_id: str, payload: dict[str, Any] | None = None
    ) -> PendingAction | None:
        return await self.resolve(action_id, "approved", payload)

    async def reject(self, action_id: str) -> PendingAction | None:
        return await self.resolve(action_id, "rejected")

    async def get(self, action_id: str) -> PendingAction | None:
        return await self._registry.get(action_id)

    async def list_pending(self) -> list[PendingAction]:
        return await self._registry.list()
