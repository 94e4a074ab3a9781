"""Unit tests for CLI argument parsing and command dispatch."""
from __future__ import annotations

import argparse
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from aegis.cli import _run, build_parser
from aegis.config import AppConfig, RegistryConfig


class TestBuildParser:
    def test_monitor_defaults_to_config_wallets(self) -> None:
        args = build_parser().parse_args(["monitor"])
        assert args.command == "monitor"
        assert args.wallets == []

    def test_monitor_with_wallets(self) -> None:
        args = build_parser().parse_args(["monitor", "w1", "w2"])
        assert args.wallets == ["w1", "w2"]

    def test_run_command(self) -> None:
        args = build_parser().parse_args(["run", "w1", '{"type": "scan"}'])
        assert args.command == "run"
        assert args.wallet == "w1"
        assert args.request == '{"type": "scan"}'

    def test_pending_command(self) -> None:
        assert build_parser().parse_args(["pending"]).command == "pending"

    def test_approve_and_reject(self) -> None:
        parser = build_parser()
        assert parser.parse_args(["approve", "abc"]).action_id == "abc"
        reject = parser.parse_args(["reject", "def"])
        assert reject.command == "reject"
        assert reject.action_id == "def"

    def test_serve_command(self) -> None:
        assert build_parser().parse_args(["serve"]).command == "serve"

    def test_config_flag(self) -> None:
        args = build_parser().parse_args(["--config", "/tmp/c.yaml", "pending"])
        assert args.config == "/tmp/c.yaml"

    def test_log_level_flag(self) -> None:
        args = build_parser().parse_args(["--log-level", "DEBUG", "pending"])
        assert args.log_level == "DEBUG"

    def test_no_command(self) -> None:
        assert build_parser().parse_args([]).command is None


def _args(command: str, **extra) -> argparse.Namespace:
    return argparse.Namespace(command=command, config=None, log_level="INFO", **extra)


class TestRegistryCommands:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "args", [_args("pending"), _args("approve", action_id="a1"), _args("reject", action_id="a1")]
    )
    async def test_memory_backend_is_refused(
        self, args: argparse.Namespace, capsys: pytest.CaptureFixture[str]
    ) -> None:
        build = AsyncMock()
        with patch("aegis.cli.load_config", return_value=AppConfig()), patch(
            "aegis.cli.build_services", build
        ):
            with pytest.raises(SystemExit) as exc_info:
                await _run(args)

        assert exc_info.value.code == 2
        assert "registry.backend: redis" in capsys.readouterr().err
        build.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_backend_lists_pending(self, capsys: pytest.CaptureFixture[str]) -> None:
        config = AppConfig(registry=RegistryConfig(backend="redis", redis_url="redis://localhost"))
        services = MagicMock()
        services.gate.list_pending = AsyncMock(return_value=[])
        services.close = AsyncMock()

        with patch("aegis.cli.load_config", return_value=config), patch(
            "aegis.cli.build_services", AsyncMock(return_value=services)
        ):
            await _run(_args("pending"))

        assert "No pending actions." in capsys.readouterr().out
        services.close.assert_awaited_once()
