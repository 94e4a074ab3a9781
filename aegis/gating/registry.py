"""Pending-action registry backends: in-process and Redis.

Both honour the same wire layout so the dashboard can read either:

* ``<prefix>pending:<id>`` → JSON record, expiring after its TTL
* ``<prefix>pending_actions`` → set of outstanding ids
* ``<prefix>updates`` → pub/sub channel for approval notifications
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..models import PendingAction

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class InMemoryRegistry:
    """Registry held in this process; suitable for a single daemon."""

    def __init__(self, key_prefix: str = "aegis:", clock: Clock = time.time) -> None:
        self.key_prefix = key_prefix
        self._clock = clock
        self._records: dict[str, PendingAction] = {}
        self._index: set[str] = set()
        self._subscribers: list[asyncio.Queue[dict[str, Any]]] = []

    @property
    def channel(self) -> str:
        return f"{self.key_prefix}updates"

    def _drop(self, action_id: str) -> None:
        self._records.pop(action_id, None)
        self._index.discard(action_id)

    def _live(self, action_id: str) -> PendingAction | None:
        record = self._records.get(action_id)
        if record is None:
            return None
        if record.is_expired(self._clock()):
            logger.info("Pending action %s expired", action_id)
            self._drop(action_id)
            return None
        return record

    async def insert_if_absent(self, action: PendingAction) -> bool:
        if self._live(action.id) is not None:
            return False
        self._records[action.id] = action
        self._index.add(action.id)
        return True

    async def compare_and_delete(self, action_id: str) -> PendingAction | None:
        record = self._live(action_id)
        if record is None or record.status != "pending":
            return None
        self._drop(action_id)
        return record

    async def get(self, action_id: str) -> PendingAction | None:
        return self._live(action_id)

    async def list(self) -> list[PendingAction]:
        live = [self._live(action_id) for action_id in sorted(self._index)]
        return sorted(
            (r for r in live if r is not None), key=lambda r: r.created_at
        )

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        """Return a queue that receives every published notification."""
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    async def publish(self, message: dict[str, Any]) -> None:
        for queue in self._subscribers:
            queue.put_nowait(message)


class RedisRegistry:
    """Registry backed by Redis; shared with the dashboard process.

    Expiry is delegated to Redis key TTLs. Resolution uses GETDEL so only
    one resolver can ever observe a given record.
    """

    def __init__(
        self,
        client: "redis.Redis",  # type: ignore[type-arg]
        key_prefix: str = "aegis:",
        clock: Clock = time.time,
    ) -> None:
        self.client = client
        self.key_prefix = key_prefix
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "aegis:") -> RedisRegistry:
        return cls(redis.from_url(url, decode_responses=True), key_prefix=key_prefix)

    @property
    def channel(self) -> str:
        return f"{self.key_prefix}updates"

    @property
    def index_key(self) -> str:
        return f"{self.key_prefix}pending_actions"

    def record_key(self, action_id: str) -> str:
        return f"{self.key_prefix}pending:{action_id}"

    async def connect(self) -> None:
        """Verify the server is reachable.

        Raises:
            ConnectionError: If Redis does not answer.
        """
        try:
            await self.client.ping()  # type: ignore[misc]
            logger.info("Connected to Redis registry")
        except RedisError as e:
            logger.error("Redis connection failed: %s", e)
            raise ConnectionError(f"Failed to connect to Redis: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()

    def _decode(self, raw: str | None) -> PendingAction | None:
        if raw is None:
            return None
        try:
            record = PendingAction.from_wire(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Discarding malformed pending record: %s", e)
            return None
        if record.is_expired(self._clock()):
            return None
        return record

    async def insert_if_absent(self, action: PendingAction) -> bool:
        created = await self.client.set(
            self.record_key(action.id),
            json.dumps(action.to_wire()),
            nx=True,
            ex=action.ttl,
        )
        if not created:
            return False
        await self.client.sadd(self.index_key, action.id)
        return True

    async def compare_and_delete(self, action_id: str) -> PendingAction | None:
        raw = await self.client.getdel(self.record_key(action_id))
        await self.client.srem(self.index_key, action_id)
        record = self._decode(raw)
        if record is None or record.status != "pending":
            return None
        return record

    async def get(self, action_id: str) -> PendingAction | None:
        return self._decode(await self.client.get(self.record_key(action_id)))

    async def list(self) -> list[PendingAction]:
        ids = sorted(await self.client.smembers(self.index_key))
        if not ids:
            return []

        raws = await self.client.mget([self.record_key(i) for i in ids])
        records: list[PendingAction] = []
        stale: list[str] = []
        for action_id, raw in zip(ids, raws):
            record = self._decode(raw)
            if record is None:
                stale.append(action_id)
            else:
                records.append(record)

        if stale:
            await self.client.srem(self.index_key, *stale)
            logger.debug("Pruned %d stale ids from pending index", len(stale))
        return sorted(records, key=lambda r: r.created_at)

    async def publish(self, message: dict[str, Any]) -> None:
        await self.client.publish(self.channel, json.dumps(message))
