"""Pure risk functions over ledger snapshots — no I/O."""
from __future__ import annotations

import math

from ..config import RiskConfig
from ..models import (
    Portfolio,
    Position,
    RebalanceAction,
    RiskAssessment,
    RiskFactor,
    StopLossCheck,
)

LOW_CASH_PCT = 5.0
HIGH_VOLATILE_PCT = 90.0
REBALANCE_PRIORITY = 10


def check_stop_loss(position: Position) -> StopLossCheck:
    """Decide whether a position's stop-loss or take-profit has been crossed.

    Stop-loss wins over take-profit when both are somehow crossed.
    """
    if position.stop_loss is None:
        return StopLossCheck(should_trigger=False, urgency="low")

    if position.current_price <= position.stop_loss:
        return StopLossCheck(
            should_trigger=True,
            urgency="critical",
            suggested_action="sell_all",
            reason=(
                f"{position.symbol} price {position.current_price:.6g} is at or below "
                f"stop-loss {position.stop_loss:.6g}"
            ),
        )

    if position.take_profit is not None and position.current_price >= position.take_profit:
        return StopLossCheck(
            should_trigger=True,
            urgency="medium",
            suggested_action="sell_partial",
            reason=(
                f"{position.symbol} price {position.current_price:.6g} reached "
                f"take-profit {position.take_profit:.6g}"
            ),
        )

    return StopLossCheck(should_trigger=False, urgency="low")


def _concentration(portfolio: Portfolio, config: RiskConfig) -> tuple[float, RiskFactor, str | None, str | None]:
    max_value = max((p.value for p in portfolio.positions), default=0.0)
    max_pct = max_value / portfolio.total_value * 100.0
    limit = config.max_position_size

    if max_pct > limit:
        deduction = 2.0 * (max_pct - limit)
        factor = RiskFactor(
            name="Concentration",
            score=max(0.0, 100.0 - deduction),
            weight=0.4,
            description=f"Largest position is {max_pct:.1f}% of portfolio",
        )
        warning = f"High concentration: {max_pct:.1f}% of portfolio in a single asset (limit {limit:g}%)"
        recommendation = f"Reduce the largest position to at most {limit:g}% of the portfolio"
        return deduction, factor, warning, recommendation

    factor = RiskFactor(
        name="Concentration",
        score=100.0,
        weight=0.4,
        description=f"Largest position is {max_pct:.1f}% of portfolio",
    )
    return 0.0, factor, None, None


def evaluate_risk(portfolio: Portfolio, config: RiskConfig) -> RiskAssessment:
    """Score a portfolio from 0 (riskiest) to 100.

    Concentration deducts ``2 x`` the excess over ``max_position_size``.
    Liquidity below 5% cash and volatile exposure above 90% deduct a flat
    10 points each. The volatility branch adds a factor but neither a
    warning nor a recommendation.
    """
    if portfolio.total_value <= 0 or not portfolio.positions:
        return RiskAssessment(overall_score=100)

    score = 100.0
    factors: list[RiskFactor] = []
    warnings: list[str] = []
    recommendations: list[str] = []

    # Concentration
    deduction, factor, warning, recommendation = _concentration(portfolio, config)
    score -= deduction
    factors.append(factor)
    if warning:
        warnings.append(warning)
    if recommendation:
        recommendations.append(recommendation)

    # Liquidity
    cash_pct = portfolio.cash_balance / portfolio.total_value * 100.0
    if cash_pct < LOW_CASH_PCT:
        score -= 10
        factors.append(
            RiskFactor(
                name="Liquidity",
                score=50.0,
                weight=0.2,
                description=f"Cash-equivalents are {cash_pct:.1f}% of portfolio",
            )
        )
        warnings.append(
            f"Low liquidity: only {cash_pct:.1f}% held in cash-equivalents"
        )
    else:
        factors.append(
            RiskFactor(
                name="Liquidity",
                score=100.0,
                weight=0.2,
                description=f"Cash-equivalents are {cash_pct:.1f}% of portfolio",
            )
        )

    # Volatility
    volatile_pct = (portfolio.total_value - portfolio.cash_balance) / portfolio.total_value * 100.0
    if volatile_pct > HIGH_VOLATILE_PCT:
        score -= 10
        factors.append(
            RiskFactor(
                name="Volatility",
                score=80.0,
                weight=0.3,
                description=f"{volatile_pct:.1f}% of value is in volatile assets",
            )
        )
    else:
        factors.append(
            RiskFactor(
                name="Volatility",
                score=100.0,
                weight=0.3,
                description=f"{volatile_pct:.1f}% of value is in volatile assets",
            )
        )

    return RiskAssessment(
        overall_score=max(0, math.floor(score + 0.5)),
        factors=tuple(factors),
        warnings=tuple(warnings),
        recommendations=tuple(recommendations),
    )


def suggest_rebalance(portfolio: Portfolio, config: RiskConfig) -> list[RebalanceAction]:
    """Emit one ``decrease`` action per position above the size cap."""
    if portfolio.total_value <= 0:
        return []

    actions: list[RebalanceAction] = []
    limit = config.max_position_size
    for position in portfolio.positions:
        pct = position.value / portfolio.total_value * 100.0
        if pct > limit:
            actions.append(
                RebalanceAction(
                    type="decrease",
                    asset_id=position.asset_id,
                    current_percentage=pct,
                    target_percentage=limit,
                    reason=f"{position.symbol} is {pct:.1f}% of portfolio, above the {limit:g}% limit",
                    priority=REBALANCE_PRIORITY,
                )
            )
    return actions
