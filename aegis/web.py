"""HTTP API for the approval dashboard and inbound activity webhooks."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Sequence

from fastapi import Body, FastAPI, HTTPException

from . import __version__
from .gating.approval import ApprovalGate
from .services.activity import ActivityFeed
from .services.monitor import MonitoringLoop

logger = logging.getLogger(__name__)


def create_app(
    gate: ApprovalGate,
    activity: ActivityFeed,
    monitor: MonitoringLoop | None = None,
    wallets: Sequence[str] = (),
) -> FastAPI:
    """Build the API around already-constructed services.

    When ``monitor`` is given, ``wallets`` are watched for the lifetime of
    the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if monitor is not None:
            for wallet_id in wallets:
                await monitor.start(wallet_id)
        yield
        if monitor is not None:
            await monitor.stop()

    app = FastAPI(title="AEGIS", version=__version__, lifespan=lifespan)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "watching": list(monitor.wallets) if monitor is not None else [],
        }

    @app.get("/api/actions")
    async def list_actions():
        """Pending actions, oldest first."""
        actions = await gate.list_pending()
        return {"actions": [a.to_wire() for a in actions]}

    @app.post("/api/actions/{action_id}/approve")
    async def approve_action(
        action_id: str, body: dict[str, Any] | None = Body(default=None)
    ):
        """Approve once; the body (e.g. a signature) is passed through."""
        resolved = await gate.approve(action_id, body or {})
        if resolved is None:
            raise HTTPException(status_code=404, detail="Action not found")
        return {"success": True, "action": resolved.to_wire()}

    @app.post("/api/actions/{action_id}/reject")
    async def reject_action(action_id: str):
        resolved = await gate.reject(action_id)
        if resolved is None:
            raise HTTPException(status_code=404, detail="Action not found")
        return {"success": True, "action": resolved.to_wire()}

    @app.post("/api/webhooks/activity")
    async def activity_webhook(payload: Any = Body(...)):
        await activity.publish(payload)
        logger.info("Received activity webhook")
        return {"success": True}

    return app
