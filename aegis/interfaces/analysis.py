"""Analysis provider protocol — token, portfolio and market intelligence."""
from typing import Protocol

from ..models import Opportunity, PortfolioAnalysis, RiskAssessment, TokenAnalysis


class AnalysisProvider(Protocol):
    """Abstract interface for gathering intelligence ahead of a decision.

    Implementations return ``None`` (or an empty list) when data is missing
    rather than raising.
    """

    async def analyze_token(self, asset_id: str) -> TokenAnalysis | None: ...

    async def analyze_portfolio(self, wallet_id: str) -> PortfolioAnalysis | None: ...

    async def scan_opportunities(self) -> list[Opportunity]: ...


class WalletRiskProvider(Protocol):
    """Produces a wallet-level risk assessment from fresh holdings."""

    async def assess_wallet(self, wallet_id: str) -> RiskAssessment: ...
