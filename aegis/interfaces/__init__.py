"""Protocol interfaces for the engine's external collaborators."""
from .analysis import AnalysisProvider, WalletRiskProvider
from .balance_provider import BalanceProvider, SubscriptionProvider
from .notifier import Notifier
from .registry import PendingActionRegistry
from .reporter import ReportGenerator
from .swap import SwapProvider

__all__ = [
    "AnalysisProvider",
    "BalanceProvider",
    "Notifier",
    "PendingActionRegistry",
    "ReportGenerator",
    "SubscriptionProvider",
    "SwapProvider",
    "WalletRiskProvider",
]
