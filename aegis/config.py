"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RiskConfig:
    max_position_size: float = 25.0
    default_stop_loss_pct: float = 10.0
    default_take_profit_pct: float = 50.0
    cash_assets: tuple[str, ...] = (USDC_MINT, USDT_MINT, "USDC", "USDT")

    def is_cash(self, asset_id: str, symbol: str = "") -> bool:
        """True when the asset (by mint or symbol) counts as cash-equivalent."""
        return asset_id in self.cash_assets or (
            bool(symbol) and symbol.upper() in self.cash_assets
        )


@dataclass(frozen=True)
class ConsensusConfig:
    threshold: float = 0.6


@dataclass(frozen=True)
class ApprovalConfig:
    human_approval_threshold: float = 100.0
    pending_ttl_seconds: int = 3600


@dataclass(frozen=True)
class SafetyConfig:
    min_wallet_score: float = 50.0
    max_asset_risk: float = 8.0


@dataclass(frozen=True)
class MonitorConfig:
    check_interval_seconds: float = 30.0
    wallets: tuple[str, ...] = ()
    webhook_url: str = ""


@dataclass(frozen=True)
class HeliusConfig:
    api_key: str = ""
    rpc_url: str = "https://mainnet.helius-rpc.com"
    webhook_api_url: str = "https://api.helius.xyz/v0/webhooks"
    timeout: int = 30


@dataclass(frozen=True)
class JupiterConfig:
    endpoint: str = "https://lite-api.jup.ag/swap/v1"
    api_key: str = ""
    slippage_bps: int = 50
    timeout: int = 30


@dataclass(frozen=True)
class DexScreenerConfig:
    endpoint: str = "https://api.dexscreener.com"
    timeout: int = 15


@dataclass(frozen=True)
class LLMConfig:
    enabled: bool = False
    endpoint: str = "https://api.openai.com/v1/chat/completions"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    timeout: int = 60


@dataclass(frozen=True)
class ProvidersConfig:
    helius: HeliusConfig = field(default_factory=HeliusConfig)
    jupiter: JupiterConfig = field(default_factory=JupiterConfig)
    dexscreener: DexScreenerConfig = field(default_factory=DexScreenerConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)


@dataclass(frozen=True)
class RegistryConfig:
    backend: str = "memory"
    redis_url: str = ""
    key_prefix: str = "aegis:"


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass(frozen=True)
class AppConfig:
    risk: RiskConfig = field(default_factory=RiskConfig)
    consensus: ConsensusConfig = field(default_factory=ConsensusConfig)
    approval: ApprovalConfig = field(default_factory=ApprovalConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_risk(raw: dict[str, Any]) -> RiskConfig:
    return RiskConfig(
        max_position_size=float(raw.get("max_position_size", 25.0)),
        default_stop_loss_pct=float(raw.get("default_stop_loss_pct", 10.0)),
        default_take_profit_pct=float(raw.get("default_take_profit_pct", 50.0)),
        cash_assets=tuple(raw.get("cash_assets", RiskConfig.cash_assets)),
    )


def _build_approval(raw: dict[str, Any]) -> ApprovalConfig:
    return ApprovalConfig(
        human_approval_threshold=float(raw.get("human_approval_threshold", 100.0)),
        pending_ttl_seconds=int(raw.get("pending_ttl_seconds", 3600)),
    )


def _build_safety(raw: dict[str, Any]) -> SafetyConfig:
    return SafetyConfig(
        min_wallet_score=float(raw.get("min_wallet_score", 50.0)),
        max_asset_risk=float(raw.get("max_asset_risk", 8.0)),
    )


def _build_monitor(raw: dict[str, Any]) -> MonitorConfig:
    return MonitorConfig(
        check_interval_seconds=float(raw.get("check_interval_seconds", 30.0)),
        wallets=tuple(w for w in raw.get("wallets", []) if w),
        webhook_url=raw.get("webhook_url", "") or "",
    )


def _build_providers(raw: dict[str, Any]) -> ProvidersConfig:
    helius = raw.get("helius", {}) or {}
    jupiter = raw.get("jupiter", {}) or {}
    dex = raw.get("dexscreener", {}) or {}
    llm = raw.get("llm", {}) or {}
    return ProvidersConfig(
        helius=HeliusConfig(
            api_key=helius.get("api_key", ""),
            rpc_url=helius.get("rpc_url", HeliusConfig.rpc_url),
            webhook_api_url=helius.get("webhook_api_url", HeliusConfig.webhook_api_url),
            timeout=int(helius.get("timeout", 30)),
        ),
        jupiter=JupiterConfig(
            endpoint=jupiter.get("endpoint", JupiterConfig.endpoint),
            api_key=jupiter.get("api_key", ""),
            slippage_bps=int(jupiter.get("slippage_bps", 50)),
            timeout=int(jupiter.get("timeout", 30)),
        ),
        dexscreener=DexScreenerConfig(
            endpoint=dex.get("endpoint", DexScreenerConfig.endpoint),
            timeout=int(dex.get("timeout", 15)),
        ),
        llm=LLMConfig(
            enabled=bool(llm.get("enabled", False)),
            endpoint=llm.get("endpoint", LLMConfig.endpoint),
            api_key=llm.get("api_key", ""),
            model=llm.get("model", LLMConfig.model),
            timeout=int(llm.get("timeout", 60)),
        ),
    )


def _build_registry(raw: dict[str, Any]) -> RegistryConfig:
    return RegistryConfig(
        backend=raw.get("backend", "memory"),
        redis_url=raw.get("redis_url", "") or "",
        key_prefix=raw.get("key_prefix", "aegis:"),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram", {}) or {}
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            bot_token=tg.get("bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
    )


def _build_server(raw: dict[str, Any]) -> ServerConfig:
    return ServerConfig(
        host=raw.get("host", "127.0.0.1"),
        port=int(raw.get("port", 8080)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (two levels up from this file).

    Raises:
        FileNotFoundError: The config file does not exist.
        ConfigurationError: A threshold is out of range or a required
            credential is missing.
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        risk=_build_risk(raw.get("risk", {}) or {}),
        consensus=ConsensusConfig(
            threshold=float((raw.get("consensus", {}) or {}).get("threshold", 0.6))
        ),
        approval=_build_approval(raw.get("approval", {}) or {}),
        safety=_build_safety(raw.get("safety", {}) or {}),
        monitor=_build_monitor(raw.get("monitor", {}) or {}),
        providers=_build_providers(raw.get("providers", {}) or {}),
        registry=_build_registry(raw.get("registry", {}) or {}),
        notifications=_build_notifications(raw.get("notifications", {}) or {}),
        server=_build_server(raw.get("server", {}) or {}),
    )

    validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def validate(cfg: AppConfig) -> None:
    """Raise ConfigurationError on invalid configuration."""
    if not 0.0 < cfg.risk.max_position_size <= 100.0:
        raise ConfigurationError("risk.max_position_size must be in (0, 100]")
    if not 0.0 <= cfg.risk.default_stop_loss_pct < 100.0:
        raise ConfigurationError("risk.default_stop_loss_pct must be in [0, 100)")
    if cfg.risk.default_take_profit_pct < 0.0:
        raise ConfigurationError("risk.default_take_profit_pct must be >= 0")

    if not 0.5 <= cfg.consensus.threshold <= 1.0:
        raise ConfigurationError("consensus.threshold must be in [0.5, 1]")

    if cfg.approval.human_approval_threshold <= 0:
        raise ConfigurationError("approval.human_approval_threshold must be positive")
    if cfg.approval.pending_ttl_seconds <= 0:
        raise ConfigurationError("approval.pending_ttl_seconds must be positive")

    if not 0.0 <= cfg.safety.min_wallet_score <= 100.0:
        raise ConfigurationError("safety.min_wallet_score must be in [0, 100]")
    if not 0.0 <= cfg.safety.max_asset_risk <= 10.0:
        raise ConfigurationError("safety.max_asset_risk must be in [0, 10]")

    if cfg.monitor.check_interval_seconds <= 0:
        raise ConfigurationError("monitor.check_interval_seconds must be positive")

    if not cfg.providers.helius.api_key:
        raise ConfigurationError("providers.helius.api_key is required")

    if cfg.registry.backend not in ("memory", "redis"):
        raise ConfigurationError(
            f"Unknown registry backend '{cfg.registry.backend}'"
        )
    if cfg.registry.backend == "redis" and not cfg.registry.redis_url:
        raise ConfigurationError("registry.redis_url is required for the redis backend")

    tg = cfg.notifications.telegram
    if tg.enabled and (not tg.bot_token or not tg.chat_id):
        raise ConfigurationError("Telegram is enabled but bot_token/chat_id are missing")

    if cfg.providers.llm.enabled and not cfg.providers.llm.api_key:
        raise ConfigurationError("providers.llm.api_key is required when llm is enabled")
