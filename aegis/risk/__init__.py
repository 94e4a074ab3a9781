"""Position ledger and risk engine."""
from .assessor import LedgerRiskAssessor
from .engine import check_stop_loss, evaluate_risk, suggest_rebalance
from .ledger import PositionLedger

__all__ = [
    "LedgerRiskAssessor",
    "PositionLedger",
    "check_stop_loss",
    "evaluate_risk",
    "suggest_rebalance",
]
