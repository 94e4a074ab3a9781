"""Inbound wallet-activity feed fed by push webhooks."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_ADDRESS_FIELDS = ("fromUserAccount", "toUserAccount", "userAccount", "account")


def extract_addresses(payload: Any) -> set[str]:
    """Collect every account address mentioned in an enhanced-webhook payload.

    Helius delivers a list of transactions; each may carry a ``feePayer``
    plus account and transfer lists whose entries name user accounts.
    """
    events = payload if isinstance(payload, list) else [payload]
    addresses: set[str] = set()

    for event in events:
        if not isinstance(event, dict):
            continue
        fee_payer = event.get("feePayer")
        if isinstance(fee_payer, str) and fee_payer:
            addresses.add(fee_payer)
        for key in ("accountData", "tokenTransfers", "nativeTransfers"):
            for entry in event.get(key) or []:
                if not isinstance(entry, dict):
                    continue
                for name in _ADDRESS_FIELDS:
                    value = entry.get(name)
                    if isinstance(value, str) and value:
                        addresses.add(value)

    return addresses


class ActivityFeed:
    """Fan-out of webhook payloads to in-process listeners.

    When a Redis client is supplied, payloads are also published on
    ``<prefix>helius_webhook`` for listeners in other processes.
    """

    def __init__(
        self,
        key_prefix: str = "aegis:",
        client: "redis.Redis | None" = None,  # type: ignore[type-arg]
    ) -> None:
        self.key_prefix = key_prefix
        self._client = client
        self._listeners: list[asyncio.Queue[Any]] = []

    @property
    def channel(self) -> str:
        return f"{self.key_prefix}helius_webhook"

    def subscribe(self) -> asyncio.Queue[Any]:
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._listeners.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Any]) -> None:
        if queue in self._listeners:
            self._listeners.remove(queue)

    async def publish(self, payload: Any) -> None:
        for queue in self._listeners:
            queue.put_nowait(payload)
        if self._client is not None:
            await self._client.publish(self.channel, json.dumps(payload))
        logger.debug("Activity published to %d listeners", len(self._listeners))
