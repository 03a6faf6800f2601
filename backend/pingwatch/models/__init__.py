"""Database models."""
from .user import User
from .monitor import Monitor
from .check_log import CheckLog

__all__ = ["User", "Monitor", "CheckLog"]
