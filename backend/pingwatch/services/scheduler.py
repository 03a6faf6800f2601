"""Scheduler service - drives periodic website probes.

Design:
- One APScheduler interval job ticks at a fixed granularity (default 60s)
- Each tick loads active monitors and probes the ones whose interval elapsed
- Concurrent probes are capped by a semaphore so a tick full of unreachable
  sites costs roughly (due / MAX_CONCURRENT) * probe timeout, not their sum
- last_checked moves to the dispatch time after every probe, failed or not,
  so a site that stays down is retried at its own cadence

Capacity: with 10 concurrent probes and the 5s probe timeout, a tick of
worst-case targets clears ~120 monitors per minute.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import IntegrityError

from ..config import settings
from ..models import CheckLog, Monitor
from ..stores import StoreUnavailable, monitor_store, check_log_store
from ..stores.check_log_store import CheckLogStore
from ..stores.monitor_store import MonitorStore
from ..utils.db_utils import utcnow
from .checker import CheckerService, ProbeResult, PROBE_TIMEOUT_SECONDS, checker_service
from .uptime import UPTIME_WINDOW

logger = logging.getLogger(__name__)

# Extra time granted to in-flight probes on shutdown before they are cancelled
SHUTDOWN_GRACE_SECONDS = 1.0


class SchedulerService:
    """Owns the tick timer and the set of in-flight probes."""

    def __init__(
        self,
        monitors: Optional[MonitorStore] = None,
        logs: Optional[CheckLogStore] = None,
        checker: Optional[CheckerService] = None,
        tick_seconds: Optional[int] = None,
        max_concurrent: Optional[int] = None,
        log_retention: Optional[int] = None,
    ):
        self.monitors = monitors or monitor_store
        self.logs = logs or check_log_store
        self.checker = checker or checker_service
        self.tick_seconds = tick_seconds or settings.scheduler_tick_seconds
        self.max_concurrent = max_concurrent or settings.max_concurrent_probes
        # Never prune below what the uptime summary reads
        self.log_retention = max(log_retention or settings.log_retention_count, UPTIME_WINDOW)

        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._stopping = False
        self._in_flight: Set[int] = set()
        # Running ticks and their per-monitor probe tasks
        self._tasks: Set[asyncio.Task] = set()
        # Log append + last_checked writes, shielded from cancellation
        self._writes: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the tick timer. Must be called with a running event loop."""
        if self._running:
            return

        self._stopping = False
        self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self.run_checks,
            trigger=IntervalTrigger(seconds=self.tick_seconds),
            id="run_checks",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.tick_seconds,
            next_run_time=datetime.now(),  # First tick right away
        )

        self.scheduler.add_job(
            self.cleanup_old_logs,
            trigger=IntervalTrigger(hours=1),
            id="cleanup_old_logs",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (tick={self.tick_seconds}s, max_concurrent={self.max_concurrent})")

    async def stop(self):
        """Stop ticking, let the current tick finish within the probe timeout, cancel the rest.

        A tick still loading monitors when stop() begins dispatches nothing.
        Pending check-log writes always complete before this returns.
        """
        if not self._running:
            return

        self._stopping = True
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
        self._running = False

        pending = [task for task in self._tasks if not task.done()]
        if pending:
            logger.info(f"Waiting for {len(pending)} in-flight checks")
            _, still_running = await asyncio.wait(
                pending, timeout=PROBE_TIMEOUT_SECONDS + SHUTDOWN_GRACE_SECONDS
            )
            for task in still_running:
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)
                logger.warning(f"Cancelled {len(still_running)} checks on shutdown")

        writes = [task for task in self._writes if not task.done()]
        if writes:
            await asyncio.gather(*writes, return_exceptions=True)

        logger.info("Scheduler stopped")

    @staticmethod
    def is_due(monitor: Monitor, now: datetime) -> bool:
        """A monitor is due once check_interval minutes passed since its last check.

        Never-checked monitors are always due. A missing or non-positive
        interval is never due, so bad data cannot turn into a probe storm.
        """
        interval = monitor.check_interval
        if interval is None or interval <= 0:
            return False

        if monitor.last_checked is None:
            return True

        return now - monitor.last_checked >= timedelta(minutes=interval)

    async def run_checks(self, now: Optional[datetime] = None) -> int:
        """Run one tick. Returns how many probes were dispatched."""
        if self._stopping:
            return 0

        tick = asyncio.current_task()
        self._tasks.add(tick)
        try:
            now = now or utcnow()

            monitors = await self.monitors.list_active_monitors()
            if not monitors or self._stopping:
                return 0

            due = [
                m for m in monitors
                if m.id not in self._in_flight and self.is_due(m, now)
            ]
            if not due:
                return 0

            logger.debug(f"Checking {len(due)} due monitors out of {len(monitors)} active")

            semaphore = asyncio.Semaphore(self.max_concurrent)

            async def check_with_limit(monitor: Monitor):
                async with semaphore:
                    await self.check_monitor(monitor, now)

            self._in_flight.update(m.id for m in due)
            tasks = [asyncio.ensure_future(check_with_limit(m)) for m in due]
            self._tasks.update(tasks)
            try:
                await asyncio.gather(*tasks)
            finally:
                self._tasks.difference_update(tasks)
                self._in_flight.difference_update(m.id for m in due)

            return len(due)

        except StoreUnavailable as e:
            logger.error(f"Monitor store unavailable, skipping tick: {e}")
        except Exception as e:
            logger.exception(f"Error running checks: {e}")
        finally:
            self._tasks.discard(tick)
        return 0

    async def check_monitor(self, monitor: Monitor, dispatched_at: datetime):
        """Probe one monitor, append its log entry and advance last_checked."""
        result = await self.checker.probe(monitor.url)

        # Cancellation must not separate the log append from the last_checked update
        write = asyncio.ensure_future(self._record(monitor, result, dispatched_at))
        self._writes.add(write)
        write.add_done_callback(self._writes.discard)
        await asyncio.shield(write)

    async def _record(self, monitor: Monitor, result: ProbeResult, dispatched_at: datetime):
        try:
            await self.logs.append_log(CheckLog(
                monitor_id=monitor.id,
                status=result.status,
                status_code=result.http_status_code,
                response_time_ms=result.latency_ms,
                error=result.details,
                # Never earlier than the dispatch it records
                checked_at=max(utcnow(), dispatched_at),
            ))
            await self.monitors.update_last_checked(monitor.id, dispatched_at)
        except IntegrityError:
            # Monitor was deleted while its probe was in flight
            logger.warning(f"Monitor {monitor.id} no longer exists, dropping its check result")
            return
        except StoreUnavailable as e:
            # last_checked unchanged, so the monitor is retried next tick
            logger.error(f"Could not record check for monitor {monitor.id}: {e}")
            return
        except Exception as e:
            logger.exception(f"Error recording check for monitor {monitor.id}: {e}")
            return

        logger.info(
            f"{monitor.url} -> {result.status.upper()} ({result.http_status_code}) in {result.latency_ms}ms"
        )
        if result.details:
            logger.warning(f"  {monitor.url}: {result.details}")

    async def cleanup_old_logs(self) -> int:
        """Trim each monitor's history to the newest log_retention entries."""
        try:
            removed = await self.logs.prune(self.log_retention)
            if removed:
                logger.info(f"Pruned {removed} old check log entries")
            return removed
        except StoreUnavailable as e:
            logger.error(f"Error cleaning up check logs: {e}")
            return 0


# Global instance
scheduler_service = SchedulerService()
