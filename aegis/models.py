"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Literal

Urgency = Literal["low", "medium", "high", "critical"]
SuggestedAction = Literal["sell_all", "sell_partial", "hold"]
RebalanceType = Literal["increase", "decrease", "exit"]
PendingStatus = Literal["pending", "approved", "rejected", "expired"]
Recommendation = Literal["strong_buy", "buy", "hold", "sell", "strong_sell"]
SwapMode = Literal["ExactIn", "ExactOut"]


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenBalance:
    """One row returned by a balance provider."""

    asset_id: str
    ui_amount: float
    price_usd: float | None = None
    value_usd: float | None = None
    symbol: str | None = None
    decimals: int | None = None


@dataclass(frozen=True)
class Position:
    """A tracked holding of one asset in one wallet."""

    id: str
    asset_id: str
    symbol: str
    entry_price: float
    current_price: float
    amount: float
    value: float
    pnl: float = 0.0
    pnl_percentage: float = 0.0
    stop_loss: float | None = None
    take_profit: float | None = None
    decimals: int | None = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Position {self.id} has negative amount")
        if (
            self.stop_loss is not None
            and self.take_profit is not None
            and not self.stop_loss < self.entry_price < self.take_profit
        ):
            raise ValueError(
                f"Position {self.id} requires stop_loss < entry_price < take_profit"
            )

    def repriced(self, current_price: float, amount: float) -> Position:
        """Return a copy with price, value and P&L recomputed."""
        pnl = (current_price - self.entry_price) * amount
        pnl_pct = (
            (current_price / self.entry_price - 1.0) * 100.0
            if self.entry_price > 0
            else 0.0
        )
        return replace(
            self,
            current_price=current_price,
            amount=amount,
            value=amount * current_price,
            pnl=pnl,
            pnl_percentage=pnl_pct,
        )


@dataclass(frozen=True)
class Portfolio:
    """Point-in-time view of a wallet, derived from its positions."""

    wallet_id: str
    total_value: float
    positions: tuple[Position, ...] = ()
    cash_balance: float = 0.0


# ---------------------------------------------------------------------------
# Risk
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StopLossCheck:
    should_trigger: bool
    urgency: Urgency = "low"
    reason: str | None = None
    suggested_action: SuggestedAction | None = None


@dataclass(frozen=True)
class RiskFactor:
    name: str
    score: float
    weight: float
    description: str


@dataclass(frozen=True)
class RiskAssessment:
    """Portfolio risk; ``overall_score`` runs 0-100, lower is riskier."""

    overall_score: int
    factors: tuple[RiskFactor, ...] = ()
    warnings: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class RebalanceAction:
    type: RebalanceType
    asset_id: str
    current_percentage: float
    target_percentage: float
    reason: str
    priority: int


@dataclass(frozen=True)
class Alert:
    """Something the monitoring loop wants a human to see."""

    wallet_id: str
    kind: Literal["stop_loss", "take_profit", "rebalance", "risk"]
    severity: Urgency
    message: str
    asset_id: str = ""


# ---------------------------------------------------------------------------
# Gating
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentVote:
    agent_id: str
    vote: bool
    confidence: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Vote confidence must be in [0, 1], got {self.confidence}")


@dataclass(frozen=True)
class ConsensusResult:
    approved: bool
    votes: tuple[AgentVote, ...] = ()
    final_score: float = 0.0


@dataclass(frozen=True)
class ActionProposal:
    """An action under consideration by the gate; not yet registered."""

    id: str
    type: str
    estimated_value: float
    description: str
    payload: dict[str, Any] | None = None


@dataclass(frozen=True)
class PendingAction:
    """A registered action awaiting human sign-off."""

    id: str
    type: str
    estimated_value: float
    description: str
    created_at: float
    ttl: int
    status: PendingStatus = "pending"
    payload: dict[str, Any] | None = None

    def is_expired(self, now: float) -> bool:
        return now >= self.created_at + self.ttl

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the registry/dashboard JSON shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "estimatedValue": self.estimated_value,
            "description": self.description,
            "status": self.status,
            "timestamp": int(self.created_at * 1000),
            "ttl": self.ttl,
        }
        if self.payload is not None:
            data["payload"] = self.payload
        return data

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> PendingAction:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            estimated_value=float(data["estimatedValue"]),
            description=str(data.get("description", "")),
            created_at=float(data["timestamp"]) / 1000.0,
            ttl=int(data.get("ttl", 3600)),
            status=data.get("status", "pending"),
            payload=data.get("payload"),
        )


# ---------------------------------------------------------------------------
# Intelligence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Signal:
    type: Literal["bullish", "bearish", "neutral"]
    source: str
    message: str
    weight: float = 1.0


@dataclass(frozen=True)
class TokenAnalysis:
    asset_id: str
    symbol: str
    name: str
    price: float
    price_change_24h: float
    volume_24h: float
    market_cap: float
    liquidity: float
    risk_score: float
    recommendation: Recommendation
    confidence: float
    signals: tuple[Signal, ...] = ()


@dataclass(frozen=True)
class Holding:
    asset_id: str
    symbol: str
    amount: float
    value: float
    percentage: float
    pnl: float
    pnl_percentage: float


@dataclass(frozen=True)
class PortfolioAnalysis:
    total_value: float
    holdings: tuple[Holding, ...]
    diversification_score: float
    risk_score: float
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class Opportunity:
    id: str
    type: Literal["token_discovery", "arbitrage", "trend", "whale_movement"]
    asset: str
    description: str
    expected_return: float
    risk_level: Literal["low", "medium", "high"]
    confidence: float


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RouteStep:
    protocol: str
    pool_address: str
    input_asset: str
    output_asset: str
    percentage: float


@dataclass(frozen=True)
class Quote:
    """Swap quote; amounts are integer base units."""

    input_asset: str
    output_asset: str
    input_amount: int
    output_amount: int
    price_impact: float
    route: tuple[RouteStep, ...] = ()
    slippage_bps: int = 0
    mode: SwapMode = "ExactIn"
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class BuiltTransaction:
    serialized_transaction: str
    estimated_fee: int
    expires_at: datetime


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TradeExplanation:
    action: Literal["buy", "sell", "swap"]
    input_token: str
    output_token: str
    amount: int
    reason: str
    confidence: float
    agent_votes: tuple[AgentVote, ...] = ()


@dataclass(frozen=True)
class PortfolioReport:
    period: str
    start_value: float
    end_value: float
    top_performers: tuple[Holding, ...] = ()
    bottom_performers: tuple[Holding, ...] = ()
    insights: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReportSection:
    heading: str
    content: str


@dataclass(frozen=True)
class Report:
    title: str
    summary: str
    sections: tuple[ReportSection, ...] = ()
    generated_at: datetime | None = None
