"""Helius client — wallet balances via DAS and activity webhooks."""
from __future__ import annotations

import logging
from typing import Any

from ..config import HeliusConfig
from ..errors import DataUnavailableError, ProviderValidationError
from ..models import TokenBalance
from .http import request_json

logger = logging.getLogger(__name__)

SOL_MINT = "So11111111111111111111111111111111111111112"
SOL_DECIMALS = 9
LAMPORTS_PER_SOL = 10**SOL_DECIMALS

WEBHOOK_TRANSACTION_TYPES = ("SWAP", "TRANSFER")


def parse_assets_by_owner(result: Any) -> list[TokenBalance]:
    """Convert a ``getAssetsByOwner`` result into token balances.

    Raises:
        ProviderValidationError: The result does not look like a DAS page.
    """
    if not isinstance(result, dict) or not isinstance(result.get("items"), list):
        raise ProviderValidationError("getAssetsByOwner result has no items list")

    balances: list[TokenBalance] = []

    native = result.get("nativeBalance")
    if isinstance(native, dict) and native.get("lamports"):
        lamports = int(native["lamports"])
        ui_amount = lamports / LAMPORTS_PER_SOL
        price = native.get("price_per_sol")
        balances.append(
            TokenBalance(
                asset_id=SOL_MINT,
                ui_amount=ui_amount,
                price_usd=float(price) if price is not None else None,
                value_usd=native.get("total_price"),
                symbol="SOL",
                decimals=SOL_DECIMALS,
            )
        )

    for item in result["items"]:
        info = item.get("token_info") if isinstance(item, dict) else None
        if not info or "balance" not in info:
            continue
        try:
            decimals = int(info.get("decimals", 0))
            raw_balance = int(info["balance"])
        except (TypeError, ValueError) as e:
            raise ProviderValidationError(f"Bad token_info for {item.get('id')}: {e}") from e

        price_info = info.get("price_info") or {}
        price = price_info.get("price_per_token")
        value = price_info.get("total_price")
        balances.append(
            TokenBalance(
                asset_id=str(item["id"]),
                ui_amount=raw_balance / 10**decimals,
                price_usd=float(price) if price is not None else None,
                value_usd=float(value) if value is not None else None,
                symbol=info.get("symbol"),
                decimals=decimals,
            )
        )

    return balances


class HeliusClient:
    """Balance and subscription provider backed by Helius."""

    def __init__(self, config: HeliusConfig, webhook_url: str = "") -> None:
        self.api_key = config.api_key
        self.rpc_url = config.rpc_url
        self.webhook_api_url = config.webhook_api_url
        self.webhook_url = webhook_url
        self.timeout = config.timeout

    async def get_balances(self, wallet_id: str) -> list[TokenBalance]:
        balances: list[TokenBalance] = []
        page = 1

        while True:
            data = await request_json(
                "POST",
                self.rpc_url,
                params={"api-key": self.api_key},
                json={
                    "jsonrpc": "2.0",
                    "id": "aegis",
                    "method": "getAssetsByOwner",
                    "params": {
                        "ownerAddress": wallet_id,
                        "page": page,
                        "limit": 1000,
                        "displayOptions": {
                            "showFungible": True,
                            "showNativeBalance": True,
                        },
                    },
                },
                timeout=self.timeout,
            )
            if "error" in data:
                raise DataUnavailableError(f"Helius RPC error: {data['error']}")

            result = data.get("result")
            parsed = parse_assets_by_owner(result)
            if page > 1:
                parsed = [b for b in parsed if b.asset_id != SOL_MINT]
            balances.extend(parsed)

            if len(result["items"]) < 1000:
                break
            page += 1

        logger.debug("Fetched %d balances for %s", len(balances), wallet_id)
        return balances

    async def create_webhook(self, wallet_id: str) -> str:
        if not self.webhook_url:
            raise DataUnavailableError("No webhook_url configured for activity push")

        data = await request_json(
            "POST",
            self.webhook_api_url,
            params={"api-key": self.api_key},
            json={
                "webhookURL": self.webhook_url,
                "transactionTypes": list(WEBHOOK_TRANSACTION_TYPES),
                "accountAddresses": [wallet_id],
                "webhookType": "enhanced",
            },
            timeout=self.timeout,
        )
        webhook_id = data.get("webhookID") if isinstance(data, dict) else None
        if not webhook_id:
            raise ProviderValidationError("Webhook response has no webhookID")

        logger.info("Registered webhook %s for %s", webhook_id, wallet_id)
        return str(webhook_id)

    async def delete_webhook(self, webhook_id: str) -> None:
        await request_json(
            "DELETE",
            f"{self.webhook_api_url}/{webhook_id}",
            params={"api-key": self.api_key},
            timeout=self.timeout,
        )
        logger.info("Deleted webhook %s", webhook_id)
