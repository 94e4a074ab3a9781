"""Background monitoring — keeps wallet ledgers fresh and raises alerts."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Sequence

from ..config import RiskConfig
from ..interfaces.balance_provider import SubscriptionProvider
from ..interfaces.notifier import Notifier
from ..models import Alert, Position, RebalanceAction, RiskAssessment, StopLossCheck
from ..risk.engine import check_stop_loss, evaluate_risk, suggest_rebalance
from ..risk.ledger import PositionLedger
from .activity import ActivityFeed, extract_addresses

logger = logging.getLogger(__name__)


class MonitoringLoop:
    """Per-wallet refresh-and-alert scheduler.

    Each watched wallet gets its own scheduler task. Cycles run as separate
    tasks, so stopping a wallet cancels future cycles but lets one that has
    already started finish. Monitoring only alerts; it never executes.
    """

    def __init__(
        self,
        ledger: PositionLedger,
        risk_config: RiskConfig,
        notifiers: Sequence[Notifier] = (),
        subscriptions: SubscriptionProvider | None = None,
        interval_seconds: float = 30.0,
        activity: ActivityFeed | None = None,
    ) -> None:
        self._ledger = ledger
        self._risk_config = risk_config
        self._notifiers = list(notifiers)
        self._subscriptions = subscriptions
        self._interval = interval_seconds
        self._activity = activity

        self._running: set[str] = set()
        self._schedulers: dict[str, asyncio.Task[None]] = {}
        self._cycles: set[asyncio.Task[list[Alert]]] = set()
        self._webhooks: dict[str, str] = {}
        self._generations: dict[str, int] = {}
        self._listener: asyncio.Task[None] | None = None
        self._activity_queue: asyncio.Queue[Any] | None = None

    def is_running(self, wallet_id: str) -> bool:
        return wallet_id in self._running

    @property
    def wallets(self) -> tuple[str, ...]:
        return tuple(sorted(self._running))

    # ------------------------------------------------------------------
    # Formatting helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _format_wallet(address: str) -> str:
        if len(address) > 16:
            return f"{address[:10]}...{address[-6:]}"
        return address

    @staticmethod
    def _now_str() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    def _build_stop_alert(self, wallet_id: str, position: Position, check: StopLossCheck) -> Alert:
        if check.suggested_action == "sell_all":
            kind = "stop_loss"
            header = f"🚨 STOP-LOSS — {position.symbol}"
            advice = "Suggested: exit the full position."
        else:
            kind = "take_profit"
            header = f"🎯 TAKE-PROFIT — {position.symbol}"
            advice = "Suggested: take partial profits."
        message = (
            f"{header}\n"
            f"\n"
            f"{check.reason}\n"
            f"Entry: ${position.entry_price:,.6g} · Now: ${position.current_price:,.6g}\n"
            f"Value: ${position.value:,.2f} · P&L {position.pnl_percentage:+.2f}%\n"
            f"\n"
            f"{advice}\n"
            f"\n"
            f"Wallet: {self._format_wallet(wallet_id)}\n"
            f"{self._now_str()} UTC"
        )
        return Alert(
            wallet_id=wallet_id,
            kind=kind,
            severity=check.urgency,
            message=message,
            asset_id=position.asset_id,
        )

    def _build_rebalance_alert(
        self, wallet_id: str, action: RebalanceAction, assessment: RiskAssessment
    ) -> Alert:
        message = (
            f"⚖️ REBALANCE — {action.current_percentage:.1f}% in one asset\n"
            f"\n"
            f"{action.reason}\n"
            f"Target: ≤ {action.target_percentage:g}% · Risk score {assessment.overall_score}/100\n"
            f"\n"
            f"Wallet: {self._format_wallet(wallet_id)}\n"
            f"{self._now_str()} UTC"
        )
        return Alert(
            wallet_id=wallet_id,
            kind="rebalance",
            severity="medium",
            message=message,
            asset_id=action.asset_id,
        )

    # ------------------------------------------------------------------
    # Notification dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, alerts: list[Alert]) -> None:
        for alert in alerts:
            for notifier in self._notifiers:
                try:
                    await notifier.send_alert(alert)
                except Exception as e:
                    logger.error("Notifier send_alert failed: %s", e)

    # ------------------------------------------------------------------
    # Core workflows
    # ------------------------------------------------------------------

    async def run_cycle(self, wallet_id: str) -> list[Alert]:
        """Refresh one wallet, evaluate it and deliver any alerts."""
        try:
            portfolio = await self._ledger.refresh(wallet_id)
        except Exception as e:
            logger.error("Monitoring cycle failed for %s: %s", wallet_id, e)
            return []

        try:
            assessment = evaluate_risk(portfolio, self._risk_config)
            alerts = [
                self._build_rebalance_alert(wallet_id, action, assessment)
                for action in suggest_rebalance(portfolio, self._risk_config)
            ]
            for position in portfolio.positions:
                check = check_stop_loss(position)
                if check.should_trigger:
                    alerts.append(self._build_stop_alert(wallet_id, position, check))
        except Exception:
            logger.exception("Risk evaluation failed for %s", wallet_id)
            return []

        logger.info(
            "Cycle — %s · $%.2f · %d positions · risk %d · %d alerts",
            self._format_wallet(wallet_id),
            portfolio.total_value,
            len(portfolio.positions),
            assessment.overall_score,
            len(alerts),
        )
        await self._dispatch(alerts)
        return alerts

    def _spawn_cycle(self, wallet_id: str) -> asyncio.Task[list[Alert]]:
        task = asyncio.create_task(self.run_cycle(wallet_id))
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)
        return task

    async def _schedule(self, wallet_id: str) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._spawn_cycle(wallet_id)

    async def start(self, wallet_id: str) -> None:
        """Begin watching ``wallet_id``; a no-op if already watched."""
        if wallet_id in self._running:
            return
        self._running.add(wallet_id)
        generation = self._generations.get(wallet_id, 0) + 1
        self._generations[wallet_id] = generation
        logger.info(
            "Monitoring %s every %.0fs", self._format_wallet(wallet_id), self._interval
        )

        await self.run_cycle(wallet_id)

        # stop(), or a stop() followed by another start(), may have run
        # while the first cycle was in flight
        if not self._is_current(wallet_id, generation):
            return

        if self._subscriptions is not None and wallet_id not in self._webhooks:
            try:
                webhook_id = await self._subscriptions.create_webhook(wallet_id)
            except Exception as e:
                logger.warning(
                    "Webhook registration failed for %s, polling only: %s", wallet_id, e
                )
            else:
                self._webhooks[wallet_id] = webhook_id
                if not self._is_current(wallet_id, generation):
                    await self._remove_webhook(wallet_id)

        if not self._is_current(wallet_id, generation):
            return
        self._schedulers[wallet_id] = asyncio.create_task(self._schedule(wallet_id))
        self._ensure_listener()

    def _is_current(self, wallet_id: str, generation: int) -> bool:
        return wallet_id in self._running and self._generations.get(wallet_id) == generation

    async def _remove_webhook(self, wallet_id: str) -> None:
        webhook_id = self._webhooks.pop(wallet_id, None)
        if webhook_id is None or self._subscriptions is None:
            return
        try:
            await self._subscriptions.delete_webhook(webhook_id)
        except Exception as e:
            logger.warning("Webhook %s for %s was not removed: %s", webhook_id, wallet_id, e)

    async def stop(self, wallet_id: str | None = None) -> None:
        """Stop one wallet, or all of them; in-flight cycles are left to finish."""
        targets = list(self._running) if wallet_id is None else [wallet_id]
        for target in targets:
            if target not in self._running:
                continue
            self._running.discard(target)
            task = self._schedulers.pop(target, None)
            if task is not None:
                task.cancel()
            await self._remove_webhook(target)
            logger.info("Stopped monitoring %s", self._format_wallet(target))

        if not self._running and self._listener is not None:
            self._listener.cancel()
            self._listener = None
            if self._activity is not None and self._activity_queue is not None:
                self._activity.unsubscribe(self._activity_queue)
            self._activity_queue = None

    async def wait_idle(self) -> None:
        """Wait for every in-flight cycle to finish."""
        if self._cycles:
            await asyncio.gather(*list(self._cycles), return_exceptions=True)

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    def handle_activity(self, payload: Any) -> list[str]:
        """Trigger out-of-cycle refreshes for watched wallets named in ``payload``.

        A payload with no recognizable address refreshes every watched wallet.
        Returns the wallets refreshed.
        """
        addresses = extract_addresses(payload)
        if addresses:
            targets = sorted(self._running & addresses)
        else:
            targets = sorted(self._running)

        for wallet_id in targets:
            logger.info("Activity on %s, refreshing", self._format_wallet(wallet_id))
            self._spawn_cycle(wallet_id)
        return targets

    def _ensure_listener(self) -> None:
        if self._activity is None or self._listener is not None:
            return
        self._activity_queue = self._activity.subscribe()
        self._listener = asyncio.create_task(self._listen(self._activity_queue))

    async def _listen(self, queue: asyncio.Queue[Any]) -> None:
        while True:
            payload = await queue.get()
            try:
                self.handle_activity(payload)
            except Exception as e:
                logger.error("Activity handling failed: %s", e)
