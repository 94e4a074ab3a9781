"""Inbound request kinds, validated before they reach the pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from ..errors import RequestValidationError
from ..models import SwapMode


@dataclass(frozen=True)
class AnalyzeTokenRequest:
    asset_id: str
    kind: str = field(default="analyze_token", init=False)


@dataclass(frozen=True)
class TradeRequest:
    """Swap ``amount`` base units of ``input_asset`` into ``output_asset``."""

    input_asset: str
    output_asset: str
    amount: int
    mode: SwapMode = "ExactIn"
    amount_decimals: int | None = None
    estimated_value_usd: float | None = None
    kind: str = field(default="trade", init=False)

    @property
    def analysis_asset(self) -> str:
        """Asset whose risk is checked before trading: the one being bought."""
        return self.output_asset

    @property
    def priced_asset(self) -> str:
        """Asset that ``amount`` is denominated in."""
        return self.input_asset if self.mode == "ExactIn" else self.output_asset


@dataclass(frozen=True)
class RebalanceRequest:
    kind: str = field(default="rebalance", init=False)


@dataclass(frozen=True)
class ReportRequest:
    period: str = "Current"
    kind: str = field(default="report", init=False)


@dataclass(frozen=True)
class ScanRequest:
    kind: str = field(default="scan", init=False)


SwarmRequest = Union[AnalyzeTokenRequest, TradeRequest, RebalanceRequest, ReportRequest, ScanRequest]

EXECUTION_KINDS = frozenset({"trade"})


def _require_str(payload: Mapping[str, Any], *names: str) -> str:
    for name in names:
        value = payload.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    raise RequestValidationError(f"Missing required field '{names[0]}'")


def _parse_amount(raw: Any) -> int:
    # Amounts arrive as strings when they exceed 2**53; never route through float.
    if isinstance(raw, bool):
        raise RequestValidationError("amount must be an integer")
    if isinstance(raw, int):
        amount = raw
    elif isinstance(raw, str) and raw.strip().isdigit():
        amount = int(raw.strip())
    else:
        raise RequestValidationError(f"amount must be a non-negative integer, got {raw!r}")
    if amount <= 0:
        raise RequestValidationError("amount must be positive")
    return amount


def _parse_trade(payload: Mapping[str, Any]) -> TradeRequest:
    mode = payload.get("mode", "ExactIn")
    if mode in ("exactIn", "ExactIn"):
        mode = "ExactIn"
    elif mode in ("exactOut", "ExactOut"):
        mode = "ExactOut"
    else:
        raise RequestValidationError(f"Unknown swap mode '{mode}'")

    estimated = payload.get("estimated_value_usd", payload.get("estimatedValueUsd"))
    if estimated is not None:
        try:
            estimated = float(estimated)
        except (TypeError, ValueError) as e:
            raise RequestValidationError("estimated_value_usd must be a number") from e
        if estimated < 0:
            raise RequestValidationError("estimated_value_usd must be >= 0")

    decimals = payload.get("amount_decimals", payload.get("decimals"))
    if decimals is not None and (
        not isinstance(decimals, int) or isinstance(decimals, bool) or not 0 <= decimals <= 18
    ):
        raise RequestValidationError("amount_decimals must be an integer in [0, 18]")

    return TradeRequest(
        input_asset=_require_str(payload, "input_asset", "inputMint"),
        output_asset=_require_str(payload, "output_asset", "outputMint"),
        amount=_parse_amount(payload.get("amount")),
        mode=mode,
        amount_decimals=decimals,
        estimated_value_usd=estimated,
    )


def parse_request(raw: Mapping[str, Any]) -> SwarmRequest:
    """Build a typed request from ``{"type": ..., "payload": {...}}``.

    Raises:
        RequestValidationError: Unknown type or missing/invalid fields.
    """
    if not isinstance(raw, Mapping):
        raise RequestValidationError("Request must be an object")

    kind = raw.get("type")
    payload = raw.get("payload") or {}
    if not isinstance(payload, Mapping):
        raise RequestValidationError("payload must be an object")

    if kind == "analyze_token":
        return AnalyzeTokenRequest(asset_id=_require_str(payload, "asset_id", "mint"))
    if kind == "trade":
        return _parse_trade(payload)
    if kind == "rebalance":
        return RebalanceRequest()
    if kind == "report":
        period = payload.get("period", "Current")
        return ReportRequest(period=str(period))
    if kind == "scan":
        return ScanRequest()

    raise RequestValidationError(f"Unknown request type '{kind}'")
