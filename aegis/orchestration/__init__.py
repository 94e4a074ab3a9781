from .pipeline import OrchestrationPipeline
from .requests import (
    AnalyzeTokenRequest,
    RebalanceRequest,
    ReportRequest,
    ScanRequest,
    SwarmRequest,
    TradeRequest,
    parse_request,
)
from .state import ExecutionPlan, ExecutionResult, OrchestrationState, Stage

__all__ = [
    "AnalyzeTokenRequest",
    "ExecutionPlan",
    "ExecutionResult",
    "OrchestrationPipeline",
    "OrchestrationState",
    "RebalanceRequest",
    "ReportRequest",
    "ScanRequest",
    "Stage",
    "SwarmRequest",
    "TradeRequest",
    "parse_request",
]
