"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from aegis.config import (
    ApprovalConfig,
    ConsensusConfig,
    RiskConfig,
    SafetyConfig,
    USDC_MINT,
)
from aegis.gating import ApprovalGate, InMemoryRegistry
from aegis.models import Portfolio, Position, TokenBalance

SOL = "So11111111111111111111111111111111111111112"
JUP = "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"
WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_position(
    asset_id: str = SOL,
    symbol: str = "SOL",
    value: float = 100.0,
    price: float = 100.0,
    entry_price: float | None = None,
    stop_loss: float | None = None,
    take_profit: float | None = None,
    decimals: int | None = None,
) -> Position:
    entry = price if entry_price is None else entry_price
    amount = value / price if price else 0.0
    return Position(
        id=f"{WALLET}:{asset_id}",
        asset_id=asset_id,
        symbol=symbol,
        entry_price=entry,
        current_price=price,
        amount=amount,
        value=value,
        stop_loss=stop_loss,
        take_profit=take_profit,
        decimals=decimals,
    )


def make_portfolio(*positions: Position, cash: float = 0.0) -> Portfolio:
    return Portfolio(
        wallet_id=WALLET,
        total_value=sum(p.value for p in positions),
        positions=tuple(positions),
        cash_balance=cash,
    )


def mock_http_session(
    status: int = 200, data: Any = None, text: str = "", method: str = "request"
) -> tuple[AsyncMock, AsyncMock]:
    """Build an aiohttp ClientSession double whose ``method`` yields one response."""
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=data)
    mock_response.text = AsyncMock(return_value=text)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    setattr(mock_session, method, MagicMock(return_value=mock_response))
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session, mock_response


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def risk_config() -> RiskConfig:
    return RiskConfig()


@pytest.fixture()
def safety_config() -> SafetyConfig:
    return SafetyConfig(min_wallet_score=50.0, max_asset_risk=8.0)


@pytest.fixture()
def consensus_config() -> ConsensusConfig:
    return ConsensusConfig(threshold=0.6)


@pytest.fixture()
def approval_config() -> ApprovalConfig:
    return ApprovalConfig(human_approval_threshold=1000.0, pending_ttl_seconds=3600)


# ---------------------------------------------------------------------------
# Gating fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def registry(clock: FakeClock) -> InMemoryRegistry:
    return InMemoryRegistry(clock=clock)


@pytest.fixture()
def gate(
    registry: InMemoryRegistry, approval_config: ApprovalConfig, clock: FakeClock
) -> ApprovalGate:
    return ApprovalGate(registry, approval_config, clock=clock)


# ---------------------------------------------------------------------------
# Provider data
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_balances() -> list[TokenBalance]:
    return [
        TokenBalance(asset_id=SOL, ui_amount=2.0, price_usd=150.0, symbol="SOL", decimals=9),
        TokenBalance(asset_id=JUP, ui_amount=100.0, price_usd=1.5, symbol="JUP", decimals=6),
        TokenBalance(asset_id=USDC_MINT, ui_amount=50.0, price_usd=1.0, symbol="USDC", decimals=6),
    ]


@pytest.fixture()
def dexscreener_pair() -> dict:
    return {
        "chainId": "solana",
        "dexId": "raydium",
        "baseToken": {"symbol": "JUP", "name": "Jupiter"},
        "priceUsd": "1.5",
        "priceChange": {"h24": 10},
        "volume": {"h24": 500000},
        "marketCap": 1000000000,
        "liquidity": {"usd": 2000000},
    }


@pytest.fixture()
def jupiter_quote() -> dict:
    return {
        "inputMint": SOL,
        "outputMint": USDC_MINT,
        "inAmount": "1000000000",
        "outAmount": "150123456",
        "priceImpactPct": "0.0012",
        "slippageBps": 50,
        "swapMode": "ExactIn",
        "routePlan": [
            {
                "swapInfo": {
                    "ammKey": "pool111",
                    "label": "Whirlpool",
                    "inputMint": SOL,
                    "outputMint": USDC_MINT,
                },
                "percent": 100,
            }
        ],
    }


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    risk:
      max_position_size: 30
      default_stop_loss_pct: 12
    consensus:
      threshold: 0.7
    approval:
      human_approval_threshold: 500
      pending_ttl_seconds: 600
    safety:
      min_wallet_score: 40
      max_asset_risk: 7
    monitor:
      check_interval_seconds: 15
      wallets: ["${TEST_WALLET}", ""]
    providers:
      helius:
        api_key: "${TEST_HELIUS_KEY}"
      jupiter:
        slippage_bps: 100
    registry:
      backend: memory
      key_prefix: "test:"
    notifications:
      telegram:
        enabled: true
        bot_token: "tok"
        chat_id: 999
    server:
      port: 9090
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("TEST_WALLET", WALLET)
    monkeypatch.setenv("TEST_HELIUS_KEY", "helius-key")
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
