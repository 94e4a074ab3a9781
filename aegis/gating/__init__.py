"""Consensus and human-approval gating."""
from .approval import ApprovalGate
from .consensus import ConsensusCoordinator, Voter
from .registry import InMemoryRegistry, RedisRegistry
from .voters import AnalysisVoter, RiskVoter

__all__ = [
    "AnalysisVoter",
    "ApprovalGate",
    "ConsensusCoordinator",
    "InMemoryRegistry",
    "RedisRegistry",
    "RiskVoter",
    "Voter",
]
