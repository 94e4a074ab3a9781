"""Telegram notification channel."""
import html
import logging
import ssl

import aiohttp
import certifi

from ..config import TelegramConfig
from ..models import Alert

logger = logging.getLogger(__name__)

_SILENT_SEVERITIES = {"low"}


class TelegramNotifier:
    """Send monitoring alerts through a Telegram bot."""

    def __init__(self, config: TelegramConfig) -> None:
        self.bot_token = config.bot_token
        self.chat_id = config.chat_id

    async def _send_message(self, message: str, silent: bool = False) -> bool:
        if not self.bot_token or not self.chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_notification": silent,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(url, json=payload) as response:
                if response.status == 200:
                    return True
                logger.error("Failed to send Telegram message: %s", response.status)
                return False

    async def send_alert(self, alert: Alert) -> bool:
        silent = alert.severity in _SILENT_SEVERITIES
        if await self._send_message(html.escape(alert.message, quote=False), silent=silent):
            logger.info("Telegram alert sent (%s · %s)", alert.kind, alert.wallet_id)
            return True
        return False
