"""Notification modules."""
from .log import LogNotifier
from .telegram import TelegramNotifier

__all__ = ["LogNotifier", "TelegramNotifier"]
