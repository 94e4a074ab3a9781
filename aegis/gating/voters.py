"""Built-in voters that turn pipeline findings into consensus votes."""
from __future__ import annotations

from typing import Any

from ..config import SafetyConfig
from ..errors import DataUnavailableError
from ..models import ActionProposal, AgentVote

_BULLISH = {"strong_buy": True, "buy": True, "hold": True, "sell": False, "strong_sell": False}


class RiskVoter:
    """Votes yes while the wallet score stays at or above the safety floor."""

    agent_id = "sentinel"

    def __init__(self, config: SafetyConfig) -> None:
        self._min_score = config.min_wallet_score

    async def vote(self, proposal: ActionProposal, context: Any) -> AgentVote:
        assessment = getattr(context, "risk_assessment", None)
        if assessment is None:
            return AgentVote(agent_id=self.agent_id, vote=False, confidence=1.0)
        score = assessment.overall_score
        return AgentVote(
            agent_id=self.agent_id,
            vote=score >= self._min_score,
            confidence=min(1.0, max(0.0, score / 100.0)),
        )


class AnalysisVoter:
    """Votes with the token recommendation; abstains without an analysis."""

    agent_id = "analyst"

    async def vote(self, proposal: ActionProposal, context: Any) -> AgentVote:
        intel = getattr(context, "intel", None) or {}
        analysis = intel.get("token_analysis")
        if analysis is None:
            raise DataUnavailableError("no token analysis to vote on")
        confidence = min(1.0, max(0.0, analysis.confidence))
        if analysis.recommendation == "hold":
            confidence *= 0.5
        return AgentVote(
            agent_id=self.agent_id,
            vote=_BULLISH.get(analysis.recommendation, False),
            confidence=confidence,
        )
