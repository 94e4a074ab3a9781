"""Jupiter client — swap quotes and unsigned swap transactions."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from ..config import JupiterConfig
from ..errors import AegisError, ExecutionError
from ..models import BuiltTransaction, Quote, RouteStep, SwapMode
from .http import request_json

logger = logging.getLogger(__name__)

# Recent blockhashes stay valid for roughly 150 slots.
BLOCKHASH_VALIDITY = timedelta(seconds=60)
BASE_FEE_LAMPORTS = 5000


def parse_quote(data: Any, mode: SwapMode, slippage_bps: int) -> Quote:
    """Build a Quote from a Jupiter quote response.

    Raises:
        ExecutionError: Required fields are missing or malformed.
    """
    if not isinstance(data, dict):
        raise ExecutionError("Quote response is not an object")
    try:
        route = tuple(
            RouteStep(
                protocol=str(step["swapInfo"].get("label", "")),
                pool_address=str(step["swapInfo"].get("ammKey", "")),
                input_asset=str(step["swapInfo"]["inputMint"]),
                output_asset=str(step["swapInfo"]["outputMint"]),
                percentage=float(step.get("percent", 100)),
            )
            for step in data.get("routePlan", [])
        )
        return Quote(
            input_asset=str(data["inputMint"]),
            output_asset=str(data["outputMint"]),
            input_amount=int(data["inAmount"]),
            output_amount=int(data["outAmount"]),
            price_impact=float(data.get("priceImpactPct", 0) or 0) * 100,
            route=route,
            slippage_bps=int(data.get("slippageBps", slippage_bps)),
            mode=mode,
            raw=data,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ExecutionError(f"Malformed quote response: {e}") from e


class JupiterClient:
    """Swap provider backed by the Jupiter swap API."""

    def __init__(self, config: JupiterConfig) -> None:
        self.endpoint = config.endpoint.rstrip("/")
        self.api_key = config.api_key
        self.slippage_bps = config.slippage_bps
        self.timeout = config.timeout

    def _headers(self) -> dict[str, str] | None:
        return {"x-api-key": self.api_key} if self.api_key else None

    async def quote(
        self, input_asset: str, output_asset: str, amount: int, mode: SwapMode
    ) -> Quote:
        try:
            data = await request_json(
                "GET",
                f"{self.endpoint}/quote",
                params={
                    "inputMint": input_asset,
                    "outputMint": output_asset,
                    "amount": str(amount),
                    "slippageBps": str(self.slippage_bps),
                    "swapMode": mode,
                },
                headers=self._headers(),
                timeout=self.timeout,
            )
        except AegisError as e:
            raise ExecutionError(f"Quote failed: {e}") from e

        quote = parse_quote(data, mode, self.slippage_bps)
        logger.info(
            "Quote %s → %s: in %d, out %d, impact %.3f%%",
            input_asset[:6],
            output_asset[:6],
            quote.input_amount,
            quote.output_amount,
            quote.price_impact,
        )
        return quote

    async def build(self, quote: Quote, wallet_id: str) -> BuiltTransaction:
        try:
            data = await request_json(
                "POST",
                f"{self.endpoint}/swap",
                json={
                    "quoteResponse": quote.raw,
                    "userPublicKey": wallet_id,
                    "wrapAndUnwrapSol": True,
                    "dynamicComputeUnitLimit": True,
                },
                headers=self._headers(),
                timeout=self.timeout,
            )
        except AegisError as e:
            raise ExecutionError(f"Swap build failed: {e}") from e

        serialized = data.get("swapTransaction") if isinstance(data, dict) else None
        if not serialized:
            raise ExecutionError("Swap response has no swapTransaction")

        priority = int(data.get("prioritizationFeeLamports", 0) or 0)
        return BuiltTransaction(
            serialized_transaction=serialized,
            estimated_fee=BASE_FEE_LAMPORTS + priority,
            expires_at=datetime.now(timezone.utc) + BLOCKHASH_VALIDITY,
        )
