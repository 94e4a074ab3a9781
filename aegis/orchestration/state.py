"""Per-request orchestration state and its merge rules."""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping

from ..models import BuiltTransaction, ConsensusResult, Quote, RiskAssessment
from .requests import SwarmRequest


class Stage(str, Enum):
    GATHERING = "GATHERING"
    RISK_CHECK = "RISK_CHECK"
    GATE = "GATE"
    EXECUTE = "EXECUTE"
    SKIP = "SKIP"
    REPORT = "REPORT"
    DONE = "DONE"


@dataclass(frozen=True)
class ExecutionPlan:
    quote: Quote
    transaction: BuiltTransaction


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class OrchestrationState:
    """Everything one request accumulates on its way to DONE.

    ``intel`` keys: ``token_analysis``, ``portfolio_analysis``,
    ``opportunities``. ``trace`` lists the stages visited, in order.
    """

    request: SwarmRequest
    wallet_id: str
    intel: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    risk_assessment: RiskAssessment | None = None
    is_safe: bool = True
    execution_plan: ExecutionPlan | None = None
    execution_result: ExecutionResult | None = None
    final_response: str | None = None
    consensus: ConsensusResult | None = None
    pending_action_id: str | None = None
    trace: tuple[str, ...] = ()


Reducer = Callable[[Any, Any], Any]


def overwrite(_old: Any, new: Any) -> Any:
    return new


def shallow_merge(
    old: Mapping[str, Any] | None, new: Mapping[str, Any] | None
) -> Mapping[str, Any]:
    merged = dict(old or {})
    merged.update(new or {})
    return MappingProxyType(merged)


def append(old: tuple[Any, ...], new: Any) -> tuple[Any, ...]:
    if isinstance(new, (tuple, list)):
        return tuple(old) + tuple(new)
    return tuple(old) + (new,)


REDUCERS: dict[str, Reducer] = {
    "intel": shallow_merge,
    "trace": append,
}

_FIELDS = frozenset(f.name for f in fields(OrchestrationState))


def apply_update(state: OrchestrationState, update: Mapping[str, Any]) -> OrchestrationState:
    """Merge a transition's partial update into a new state.

    Raises:
        KeyError: The update names a field the state does not have.
    """
    unknown = set(update) - _FIELDS
    if unknown:
        raise KeyError(f"Unknown state fields: {sorted(unknown)}")

    changes = {
        name: REDUCERS.get(name, overwrite)(getattr(state, name), value)
        for name, value in update.items()
    }
    return replace(state, **changes)
