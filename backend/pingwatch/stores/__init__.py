"""Persistence collaborators used by the scheduler, aggregator and API."""
from .base import StoreUnavailable, DuplicateMonitorError, DuplicateUserError
from .monitor_store import MonitorStore, monitor_store
from .check_log_store import CheckLogStore, check_log_store
from .user_store import UserStore, user_store

__all__ = [
    "StoreUnavailable",
    "DuplicateMonitorError",
    "DuplicateUserError",
    "MonitorStore",
    "monitor_store",
    "CheckLogStore",
    "check_log_store",
    "UserStore",
    "user_store",
]
