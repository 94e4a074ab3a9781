"""HTTP API tests — approval dashboard endpoints and the activity webhook."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from aegis import __version__
from aegis.gating import ApprovalGate, InMemoryRegistry
from aegis.models import ActionProposal
from aegis.services import ActivityFeed
from aegis.web import create_app

from conftest import WALLET


def _seed(gate: ApprovalGate, action_id: str, value: float = 2500.0) -> None:
    proposal = ActionProposal(
        id=action_id,
        type="trade",
        estimated_value=value,
        description="Swap SOL → USDC",
        payload={"walletId": WALLET, "amount": "1000000000"},
    )
    assert asyncio.run(gate.evaluate(proposal)) is True


@pytest.fixture()
def feed() -> ActivityFeed:
    return ActivityFeed()


@pytest.fixture()
def client(gate: ApprovalGate, feed: ActivityFeed) -> TestClient:
    return TestClient(create_app(gate, feed))


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": __version__, "watching": []}


class TestActions:
    def test_empty_list(self, client: TestClient) -> None:
        response = client.get("/api/actions")
        assert response.status_code == 200
        assert response.json() == {"actions": []}

    def test_lists_pending_in_wire_shape(self, client: TestClient, gate: ApprovalGate) -> None:
        _seed(gate, "a1")
        actions = client.get("/api/actions").json()["actions"]
        assert len(actions) == 1
        assert actions[0]["id"] == "a1"
        assert actions[0]["estimatedValue"] == 2500.0
        assert actions[0]["status"] == "pending"
        assert actions[0]["payload"]["amount"] == "1000000000"

    def test_approve_once(
        self, client: TestClient, gate: ApprovalGate, registry: InMemoryRegistry
    ) -> None:
        _seed(gate, "a1")
        updates = registry.subscribe()

        first = client.post("/api/actions/a1/approve", json={"signature": "sig123"})
        second = client.post("/api/actions/a1/approve", json={"signature": "sig123"})

        assert first.status_code == 200
        assert first.json()["success"] is True
        assert first.json()["action"]["status"] == "approved"
        assert second.status_code == 404
        assert second.json()["detail"] == "Action not found"

        message = updates.get_nowait()
        assert message["type"] == "APPROVED"
        assert message["payload"] == {"signature": "sig123"}
        assert updates.empty()

    def test_approve_without_body(self, client: TestClient, gate: ApprovalGate) -> None:
        _seed(gate, "a1")
        response = client.post("/api/actions/a1/approve")
        assert response.status_code == 200

    def test_reject(self, client: TestClient, gate: ApprovalGate) -> None:
        _seed(gate, "a1")
        response = client.post("/api/actions/a1/reject")
        assert response.status_code == 200
        assert response.json()["action"]["status"] == "rejected"
        assert client.get("/api/actions").json() == {"actions": []}
        assert client.post("/api/actions/a1/approve").status_code == 404

    def test_unknown_action_is_404(self, client: TestClient) -> None:
        assert client.post("/api/actions/nope/approve").status_code == 404
        assert client.post("/api/actions/nope/reject").status_code == 404

    def test_expired_action_is_404(self, client: TestClient, gate: ApprovalGate, clock) -> None:
        _seed(gate, "a1")
        clock.advance(3600)
        assert client.post("/api/actions/a1/approve").status_code == 404
        assert client.get("/api/actions").json() == {"actions": []}


class TestActivityWebhook:
    def test_publishes_payload(self, client: TestClient, feed: ActivityFeed) -> None:
        queue = feed.subscribe()
        payload = [{"feePayer": WALLET, "type": "SWAP"}]

        response = client.post("/api/webhooks/activity", json=payload)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert queue.get_nowait() == payload

    def test_requires_body(self, client: TestClient) -> None:
        assert client.post("/api/webhooks/activity").status_code == 422


class TestLifespan:
    def test_watches_configured_wallets(self, gate: ApprovalGate, feed: ActivityFeed) -> None:
        monitor = MagicMock()
        monitor.start = AsyncMock()
        monitor.stop = AsyncMock()
        monitor.wallets = (WALLET,)

        with TestClient(create_app(gate, feed, monitor=monitor, wallets=[WALLET])) as client:
            monitor.start.assert_awaited_once_with(WALLET)
            assert client.get("/health").json()["watching"] == [WALLET]

        monitor.stop.assert_awaited_once()
