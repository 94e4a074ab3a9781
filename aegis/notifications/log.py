"""Notifier that writes alerts to the application log."""
import logging

from ..models import Alert

logger = logging.getLogger(__name__)

_LEVELS = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.WARNING,
    "critical": logging.CRITICAL,
}


class LogNotifier:
    """Always-on channel so alerts are visible without any bot configured."""

    async def send_alert(self, alert: Alert) -> bool:
        logger.log(
            _LEVELS.get(alert.severity, logging.WARNING),
            "[%s] %s\n%s",
            alert.kind,
            alert.wallet_id,
            alert.message,
        )
        return True
