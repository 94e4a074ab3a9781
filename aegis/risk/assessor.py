"""Wallet-level risk assessment through the shared ledger refresh path."""
from __future__ import annotations

import logging

from ..config import RiskConfig
from ..models import RiskAssessment
from .engine import evaluate_risk
from .ledger import PositionLedger

logger = logging.getLogger(__name__)


class LedgerRiskAssessor:
    """Refreshes a wallet's ledger and scores the resulting portfolio."""

    def __init__(self, ledger: PositionLedger, config: RiskConfig) -> None:
        self._ledger = ledger
        self._config = config

    async def assess_wallet(self, wallet_id: str) -> RiskAssessment:
        portfolio = await self._ledger.refresh(wallet_id)
        assessment = evaluate_risk(portfolio, self._config)
        logger.info(
            "Wallet risk — %s · score %d · $%.2f across %d positions",
            wallet_id,
            assessment.overall_score,
            portfolio.total_value,
            len(portfolio.positions),
        )
        return assessment
