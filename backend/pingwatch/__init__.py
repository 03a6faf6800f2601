"""PingWatch - website uptime monitoring service."""

__version__ = "1.0.0"
