"""Pending-action registry protocol — any backing store satisfies it."""
from __future__ import annotations

from typing import Any, Protocol

from ..models import PendingAction


class PendingActionRegistry(Protocol):
    """Shared store for actions awaiting human sign-off.

    ``insert_if_absent`` returns False when the id already exists.
    ``compare_and_delete`` removes and returns the record only if it is
    still pending and unexpired; otherwise it returns None.
    """

    async def insert_if_absent(self, action: PendingAction) -> bool: ...

    async def compare_and_delete(self, action_id: str) -> PendingAction | None: ...

    async def get(self, action_id: str) -> PendingAction | None: ...

    async def list(self) -> list[PendingAction]: ...

    async def publish(self, message: dict[str, Any]) -> None: ...
