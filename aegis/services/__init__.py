"""Long-running services."""
from .activity import ActivityFeed, extract_addresses
from .monitor import MonitoringLoop

__all__ = ["ActivityFeed", "MonitoringLoop", "extract_addresses"]
