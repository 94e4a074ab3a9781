"""Notifier protocol — alert delivery channel."""
from typing import Protocol

from ..models import Alert


class Notifier(Protocol):
    """Abstract interface for delivering monitoring alerts."""

    async def send_alert(self, alert: Alert) -> bool: ...
