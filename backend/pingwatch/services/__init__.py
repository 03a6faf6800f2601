"""Services for probing, scheduling, uptime and auth."""
from .checker import CheckerService
from .scheduler import SchedulerService
from .uptime import UptimeService

__all__ = ["CheckerService", "SchedulerService", "UptimeService"]
