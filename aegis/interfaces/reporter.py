"""Report generator protocol — opaque natural-language producer."""
from typing import Protocol

from ..models import PortfolioReport, Report, TradeExplanation


class ReportGenerator(Protocol):
    """Abstract interface for turning structured data into text."""

    async def explain_trade(self, trade: TradeExplanation) -> str: ...

    async def generate_report(self, portfolio: PortfolioReport) -> Report: ...
