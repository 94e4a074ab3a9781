"""Confidence-weighted consensus over independent agent votes."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol, Sequence

from ..config import ConsensusConfig
from ..models import ActionProposal, AgentVote, ConsensusResult

logger = logging.getLogger(__name__)


class Voter(Protocol):
    """An independent agent asked for an opinion on a proposal."""

    @property
    def agent_id(self) -> str: ...

    async def vote(self, proposal: ActionProposal, context: Any) -> AgentVote: ...


class ConsensusCoordinator:
    """Aggregates votes into an approve/reject decision.

    ``final_score`` is the confidence-weighted share of yes votes. An empty
    tally, or one where every confidence is zero, always rejects.
    """

    def __init__(self, config: ConsensusConfig) -> None:
        self._threshold = config.threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    def coordinate(self, proposal: ActionProposal, votes: Iterable[AgentVote]) -> ConsensusResult:
        tally = tuple(votes)
        max_weight = sum(v.confidence for v in tally)
        yes_weight = sum(v.confidence for v in tally if v.vote)
        final_score = yes_weight / max_weight if max_weight > 0 else 0.0
        approved = max_weight > 0 and final_score >= self._threshold

        logger.info(
            "Consensus on %s (%s) — %d votes, score %.4f, threshold %.2f → %s",
            proposal.id,
            proposal.type,
            len(tally),
            final_score,
            self._threshold,
            "approved" if approved else "rejected",
        )
        return ConsensusResult(approved=approved, votes=tally, final_score=final_score)

    async def poll(
        self, proposal: ActionProposal, voters: Sequence[Voter], context: Any = None
    ) -> ConsensusResult:
        """Collect votes from ``voters`` and coordinate; failing voters abstain."""
        votes: list[AgentVote] = []
        for voter in voters:
            try:
                votes.append(await voter.vote(proposal, context))
            except Exception as e:
                logger.error("Voter %s failed on %s: %s", voter.agent_id, proposal.id, e)
        return self.coordinate(proposal, votes)
