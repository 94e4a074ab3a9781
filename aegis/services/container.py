"""Wires collaborators from configuration into ready-to-use services."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Union

from ..config import AppConfig
from ..gating import (
    AnalysisVoter,
    ApprovalGate,
    ConsensusCoordinator,
    InMemoryRegistry,
    RedisRegistry,
    RiskVoter,
)
from ..interfaces.notifier import Notifier
from ..notifications import LogNotifier, TelegramNotifier
from ..orchestration import OrchestrationPipeline
from ..providers import DexScreenerAnalyst, HeliusClient, JupiterClient
from ..reporting import LLMReporter, TemplateReporter
from ..risk import LedgerRiskAssessor, PositionLedger
from .activity import ActivityFeed
from .monitor import MonitoringLoop

logger = logging.getLogger(__name__)

Registry = Union[InMemoryRegistry, RedisRegistry]


@dataclass
class Services:
    config: AppConfig
    registry: Registry
    ledger: PositionLedger
    gate: ApprovalGate
    pipeline: OrchestrationPipeline
    monitor: MonitoringLoop
    activity: ActivityFeed
    notifiers: list[Notifier] = field(default_factory=list)

    async def close(self) -> None:
        await self.monitor.stop()
        if isinstance(self.registry, RedisRegistry):
            await self.registry.close()


def build_registry(config: AppConfig) -> Registry:
    if config.registry.backend == "redis":
        return RedisRegistry.from_url(
            config.registry.redis_url, key_prefix=config.registry.key_prefix
        )
    return InMemoryRegistry(key_prefix=config.registry.key_prefix)


def build_notifiers(config: AppConfig) -> list[Notifier]:
    notifiers: list[Notifier] = [LogNotifier()]
    if config.notifications.telegram.enabled:
        notifiers.append(TelegramNotifier(config.notifications.telegram))
    return notifiers


async def build_services(config: AppConfig) -> Services:
    """Construct every service for ``config``.

    Raises:
        ConnectionError: The Redis registry backend is unreachable.
    """
    registry = build_registry(config)
    if isinstance(registry, RedisRegistry):
        await registry.connect()
        activity = ActivityFeed(config.registry.key_prefix, client=registry.client)
    else:
        activity = ActivityFeed(config.registry.key_prefix)

    helius = HeliusClient(config.providers.helius, webhook_url=config.monitor.webhook_url)
    ledger = PositionLedger(helius, config.risk)
    analyst = DexScreenerAnalyst(config.providers.dexscreener, ledger, config.risk)
    gate = ApprovalGate(registry, config.approval)

    if config.providers.llm.enabled:
        reporter = LLMReporter(config.providers.llm)
    else:
        reporter = TemplateReporter()

    pipeline = OrchestrationPipeline(
        analyst=analyst,
        wallet_risk=LedgerRiskAssessor(ledger, config.risk),
        gate=gate,
        swap=JupiterClient(config.providers.jupiter),
        reporter=reporter,
        safety=config.safety,
        consensus=ConsensusCoordinator(config.consensus),
        voters=(RiskVoter(config.safety), AnalysisVoter()),
        ledger=ledger,
    )

    notifiers = build_notifiers(config)
    monitor = MonitoringLoop(
        ledger,
        config.risk,
        notifiers=notifiers,
        subscriptions=helius if config.monitor.webhook_url else None,
        interval_seconds=config.monitor.check_interval_seconds,
        activity=activity,
    )

    logger.info(
        "Services ready — registry %s · reporter %s · %d notifiers",
        config.registry.backend,
        type(reporter).__name__,
        len(notifiers),
    )
    return Services(
        config=config,
        registry=registry,
        ledger=ledger,
        gate=gate,
        pipeline=pipeline,
        monitor=monitor,
        activity=activity,
        notifiers=notifiers,
    )
