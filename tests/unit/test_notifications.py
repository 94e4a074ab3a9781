"""Unit tests for notification channels."""
from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from aegis.config import TelegramConfig
from aegis.models import Alert
from aegis.notifications import LogNotifier, TelegramNotifier

from conftest import WALLET, mock_http_session

ALERT = Alert(
    wallet_id=WALLET,
    kind="stop_loss",
    severity="critical",
    message="🚨 STOP-LOSS — SOL <below 90>",
    asset_id="SOL",
)


@pytest.fixture()
def telegram_notifier() -> TelegramNotifier:
    return TelegramNotifier(TelegramConfig(enabled=True, bot_token="bot-tok", chat_id="12345"))


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_send_alert_success(self, telegram_notifier: TelegramNotifier) -> None:
        session, _ = mock_http_session(method="post")
        with patch("aegis.notifications.telegram.aiohttp.ClientSession", return_value=session):
            with patch("aegis.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send_alert(ALERT)

        assert result is True
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.telegram.org/botbot-tok/sendMessage"
        assert kwargs["json"]["chat_id"] == "12345"
        assert kwargs["json"]["text"] == "🚨 STOP-LOSS — SOL &lt;below 90&gt;"
        assert kwargs["json"]["disable_notification"] is False

    @pytest.mark.asyncio
    async def test_low_severity_is_silent(self, telegram_notifier: TelegramNotifier) -> None:
        session, _ = mock_http_session(method="post")
        low = Alert(wallet_id=WALLET, kind="risk", severity="low", message="fyi")
        with patch("aegis.notifications.telegram.aiohttp.ClientSession", return_value=session):
            with patch("aegis.notifications.telegram.aiohttp.TCPConnector"):
                await telegram_notifier.send_alert(low)
        assert session.post.call_args.kwargs["json"]["disable_notification"] is True

    @pytest.mark.asyncio
    async def test_send_alert_failure(self, telegram_notifier: TelegramNotifier) -> None:
        session, _ = mock_http_session(status=403, method="post")
        with patch("aegis.notifications.telegram.aiohttp.ClientSession", return_value=session):
            with patch("aegis.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send_alert(ALERT)
        assert result is False

    @pytest.mark.asyncio
    async def test_unconfigured_returns_false(self) -> None:
        notifier = TelegramNotifier(TelegramConfig(enabled=True))
        assert await notifier.send_alert(ALERT) is False


class TestLogNotifier:
    @pytest.mark.asyncio
    async def test_logs_at_severity_level(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="aegis.notifications.log"):
            assert await LogNotifier().send_alert(ALERT) is True
        record = caplog.records[-1]
        assert record.levelno == logging.CRITICAL
        assert "STOP-LOSS" in record.getMessage()
