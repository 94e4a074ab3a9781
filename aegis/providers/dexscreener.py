"""DexScreener-backed analyst — token heuristics, portfolio and trend scans."""
from __future__ import annotations

import logging
from typing import Any, Sequence

from ..config import DexScreenerConfig, RiskConfig
from ..errors import DataUnavailableError
from ..models import Holding, Opportunity, PortfolioAnalysis, Signal, TokenAnalysis
from ..risk.engine import evaluate_risk, suggest_rebalance
from ..risk.ledger import PositionLedger
from .helius import SOL_MINT
from .http import request_json

logger = logging.getLogger(__name__)

DEFAULT_WATCHLIST = (
    SOL_MINT,
    "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN",  # JUP
    "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",  # BONK
    "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm",  # WIF
)


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def best_pair(pairs: Sequence[dict[str, Any]]) -> dict[str, Any] | None:
    """Return the Solana pair with the deepest liquidity."""
    solana = [p for p in pairs if p.get("chainId", "solana") == "solana"]
    if not solana:
        return None
    return max(solana, key=lambda p: _num((p.get("liquidity") or {}).get("usd")))


def score_token(asset_id: str, pair: dict[str, Any]) -> TokenAnalysis:
    """Apply momentum and liquidity heuristics to one DexScreener pair."""
    base = pair.get("baseToken") or {}
    price = _num(pair.get("priceUsd"))
    change = _num((pair.get("priceChange") or {}).get("h24"))
    volume = _num((pair.get("volume") or {}).get("h24"))
    liquidity = _num((pair.get("liquidity") or {}).get("usd"))
    market_cap = _num(pair.get("marketCap") or pair.get("fdv"))

    signals: list[Signal] = []

    if change > 15 and volume > 1_000_000:
        recommendation, confidence = "strong_buy", 0.85
    elif change > 5 and volume > 100_000:
        recommendation, confidence = "buy", 0.7
    elif change < -15:
        recommendation, confidence = "strong_sell", 0.8
    elif change < -5:
        recommendation, confidence = "sell", 0.65
    else:
        recommendation, confidence = "hold", 0.5

    if change > 5:
        signals.append(Signal("bullish", "dexscreener", f"Price up {change:.1f}% in 24h", 0.6))
    elif change < -5:
        signals.append(Signal("bearish", "dexscreener", f"Price down {abs(change):.1f}% in 24h", 0.6))
    else:
        signals.append(Signal("neutral", "dexscreener", f"Price flat ({change:+.1f}%) in 24h", 0.3))

    if volume > 100_000:
        signals.append(Signal("bullish", "dexscreener", f"Healthy 24h volume ${volume:,.0f}", 0.4))

    risk = 2.0
    if liquidity < 10_000:
        risk += 5
        signals.append(Signal("bearish", "dexscreener", f"Very thin liquidity ${liquidity:,.0f}", 0.8))
    elif liquidity < 100_000:
        risk += 3
        signals.append(Signal("bearish", "dexscreener", f"Low liquidity ${liquidity:,.0f}", 0.5))
    elif liquidity < 1_000_000:
        risk += 1
    if volume < 10_000:
        risk += 2
    if abs(change) > 50:
        risk += 2
    elif abs(change) > 20:
        risk += 1
    if 0 < market_cap < 1_000_000:
        risk += 1

    return TokenAnalysis(
        asset_id=asset_id,
        symbol=str(base.get("symbol") or asset_id[:6]),
        name=str(base.get("name") or ""),
        price=price,
        price_change_24h=change,
        volume_24h=volume,
        market_cap=market_cap,
        liquidity=liquidity,
        risk_score=min(10.0, max(0.0, risk)),
        recommendation=recommendation,
        confidence=confidence,
        signals=tuple(signals),
    )


class DexScreenerAnalyst:
    """Analysis provider combining DexScreener market data with the ledger."""

    def __init__(
        self,
        config: DexScreenerConfig,
        ledger: PositionLedger,
        risk_config: RiskConfig,
        watchlist: Sequence[str] = DEFAULT_WATCHLIST,
    ) -> None:
        self.endpoint = config.endpoint.rstrip("/")
        self.timeout = config.timeout
        self._ledger = ledger
        self._risk_config = risk_config
        self._watchlist = tuple(watchlist)

    async def analyze_token(self, asset_id: str) -> TokenAnalysis | None:
        try:
            data = await request_json(
                "GET",
                f"{self.endpoint}/latest/dex/tokens/{asset_id}",
                timeout=self.timeout,
            )
        except DataUnavailableError as e:
            logger.error("Token analysis unavailable for %s: %s", asset_id, e)
            return None

        pairs = data.get("pairs") if isinstance(data, dict) else None
        pair = best_pair([p for p in pairs or [] if isinstance(p, dict)])
        if pair is None:
            logger.warning("No DexScreener pairs for %s", asset_id)
            return None

        analysis = score_token(asset_id, pair)
        logger.info(
            "Token %s — $%.6g · %+.2f%% · risk %g · %s",
            analysis.symbol,
            analysis.price,
            analysis.price_change_24h,
            analysis.risk_score,
            analysis.recommendation,
        )
        return analysis

    async def analyze_portfolio(self, wallet_id: str) -> PortfolioAnalysis | None:
        try:
            portfolio = await self._ledger.refresh(wallet_id)
        except DataUnavailableError as e:
            logger.error("Portfolio analysis unavailable for %s: %s", wallet_id, e)
            return None

        if portfolio.total_value <= 0:
            return PortfolioAnalysis(
                total_value=0.0,
                holdings=(),
                diversification_score=0.0,
                risk_score=100.0,
                suggestions=(),
            )

        holdings = tuple(
            Holding(
                asset_id=p.asset_id,
                symbol=p.symbol,
                amount=p.amount,
                value=p.value,
                percentage=p.value / portfolio.total_value * 100.0,
                pnl=p.pnl,
                pnl_percentage=p.pnl_percentage,
            )
            for p in sorted(portfolio.positions, key=lambda p: p.value, reverse=True)
        )
        # 1 - Herfindahl index, as a percentage
        hhi = sum((h.percentage / 100.0) ** 2 for h in holdings)
        assessment = evaluate_risk(portfolio, self._risk_config)
        rebalance = suggest_rebalance(portfolio, self._risk_config)

        suggestions = [a.reason for a in rebalance]
        suggestions.extend(r for r in assessment.recommendations if r not in suggestions)

        return PortfolioAnalysis(
            total_value=portfolio.total_value,
            holdings=holdings,
            diversification_score=(1.0 - hhi) * 100.0,
            risk_score=float(assessment.overall_score),
            suggestions=tuple(suggestions),
        )

    async def scan_opportunities(self) -> list[Opportunity]:
        opportunities: list[Opportunity] = []
        for asset_id in self._watchlist:
            analysis = await self.analyze_token(asset_id)
            if analysis is None or analysis.recommendation not in ("buy", "strong_buy"):
                continue

            if analysis.risk_score >= 7:
                risk_level = "high"
            elif analysis.risk_score >= 4:
                risk_level = "medium"
            else:
                risk_level = "low"

            opportunities.append(
                Opportunity(
                    id=f"trend-{asset_id[:8]}",
                    type="trend",
                    asset=analysis.symbol,
                    description=(
                        f"{analysis.symbol} up {analysis.price_change_24h:.1f}% on "
                        f"${analysis.volume_24h:,.0f} volume"
                    ),
                    expected_return=analysis.price_change_24h,
                    risk_level=risk_level,
                    confidence=analysis.confidence,
                )
            )
        return opportunities
