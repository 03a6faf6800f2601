"""Uptime service - read-time summaries over recent check logs."""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ..models import CheckLog
from ..stores import StoreUnavailable, check_log_store
from ..stores.check_log_store import CheckLogStore

logger = logging.getLogger(__name__)

# Number of most recent checks an uptime figure covers
UPTIME_WINDOW = 100

UNKNOWN_STATUS = "unknown"


@dataclass(frozen=True)
class UptimeSummary:
    """Uptime over the recent window plus the latest observation."""
    uptime_percentage: float
    last_status: str
    last_response_time: Optional[int]
    total_checks: int = 0


def summarize(entries: Sequence[CheckLog]) -> UptimeSummary:
    """Summarize check log entries ordered most recent first.

    With no entries the percentage is 0.0 and the status is "unknown".
    """
    total = len(entries)
    up_count = sum(1 for entry in entries if entry.status == "up")
    uptime = round(up_count / max(1, total) * 100, 2)

    if not entries:
        return UptimeSummary(
            uptime_percentage=0.0,
            last_status=UNKNOWN_STATUS,
            last_response_time=None,
        )

    latest = entries[0]
    return UptimeSummary(
        uptime_percentage=uptime,
        last_status=latest.status,
        last_response_time=latest.response_time_ms,
        total_checks=total,
    )


class UptimeService:
    """Computes summaries on demand; nothing is cached."""

    def __init__(self, logs: Optional[CheckLogStore] = None):
        self.logs = logs or check_log_store

    async def summary_for(self, monitor_id: int) -> UptimeSummary:
        """Summary for one monitor. A store failure reads as no data."""
        try:
            entries = await self.logs.recent_logs(monitor_id, limit=UPTIME_WINDOW)
        except StoreUnavailable as e:
            logger.error(f"Could not read check logs for monitor {monitor_id}: {e}")
            entries = []
        return summarize(entries)


# Global instance
uptime_service = UptimeService()
