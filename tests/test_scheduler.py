from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from pingwatch.models import Monitor
from pingwatch.services.checker import ProbeResult
from pingwatch.services.scheduler import SchedulerService
from pingwatch.stores import StoreUnavailable

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _monitor(monitor_id: int, *, interval: int | None = 5, active: bool = True, last_checked: datetime | None = None) -> Monitor:
    return Monitor(
        id=monitor_id,
        user_id=1,
        url=f"https://site{monitor_id}.example.test/",
        check_interval=interval,
        is_active=active,
        last_checked=last_checked,
    )


class FakeMonitorStore:
    def __init__(self, monitors: list[Monitor]):
        self.monitors = {m.id: m for m in monitors}
        self.fail_list = False
        self.fail_update = False
        self.listing = asyncio.Event()
        self.hold: asyncio.Event | None = None

    async def list_active_monitors(self) -> list[Monitor]:
        self.listing.set()
        if self.hold is not None:
            await self.hold.wait()
        if self.fail_list:
            raise StoreUnavailable("database is locked")
        return [m for m in self.monitors.values() if m.is_active]

    async def update_last_checked(self, monitor_id: int, checked_at: datetime) -> None:
        if self.fail_update:
            raise StoreUnavailable("database is locked")
        self.monitors[monitor_id].last_checked = checked_at


class FakeLogStore:
    def __init__(self):
        self.entries = []
        self.fail_append = False
        self.pruned_with: list[int] = []
        self.appending = asyncio.Event()
        self.hold: asyncio.Event | None = None

    async def append_log(self, entry):
        self.appending.set()
        if self.hold is not None:
            await self.hold.wait()
        if self.fail_append:
            raise StoreUnavailable("disk I/O error")
        self.entries.append(entry)
        return entry

    async def prune(self, keep: int) -> int:
        self.pruned_with.append(keep)
        return 0


class FakeChecker:
    def __init__(self, status: str = "up", code: int = 200, delay: float = 0.0):
        self.status = status
        self.code = code
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0
        self.gate: asyncio.Event | None = None

    async def probe(self, url: str) -> ProbeResult:
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        details = None if self.status == "up" else "received HTTP 503"
        return ProbeResult(status=self.status, http_status_code=self.code, latency_ms=42, details=details)


def _scheduler(monitors: list[Monitor], checker: FakeChecker | None = None, **kwargs):
    store = FakeMonitorStore(monitors)
    logs = FakeLogStore()
    checker = checker or FakeChecker()
    service = SchedulerService(monitors=store, logs=logs, checker=checker, **kwargs)
    return service, store, logs, checker


@pytest.mark.parametrize(
    ("monitor", "due"),
    [
        (_monitor(1), True),
        (_monitor(1, last_checked=NOW - timedelta(minutes=4, seconds=59)), False),
        (_monitor(1, last_checked=NOW - timedelta(minutes=5)), True),
        (_monitor(1, last_checked=NOW - timedelta(hours=3)), True),
        (_monitor(1, interval=1, last_checked=NOW - timedelta(seconds=30)), False),
        (_monitor(1, interval=0), False),
        (_monitor(1, interval=-5, last_checked=NOW - timedelta(days=1)), False),
        (_monitor(1, interval=None), False),
    ],
)
def test_is_due(monitor: Monitor, due: bool) -> None:
    assert SchedulerService.is_due(monitor, NOW) is due


@pytest.mark.asyncio
async def test_tick_probes_only_due_monitors() -> None:
    monitors = [
        _monitor(1),
        _monitor(2, last_checked=NOW - timedelta(minutes=1)),
        _monitor(3, last_checked=NOW - timedelta(minutes=10)),
    ]
    service, store, logs, checker = _scheduler(monitors)

    dispatched = await service.run_checks(NOW)

    assert dispatched == 2
    assert sorted(checker.calls) == [monitors[0].url, monitors[2].url]
    assert sorted(e.monitor_id for e in logs.entries) == [1, 3]
    assert store.monitors[1].last_checked == NOW
    assert store.monitors[2].last_checked == NOW - timedelta(minutes=1)
    assert store.monitors[3].last_checked == NOW


@pytest.mark.asyncio
async def test_inactive_monitors_are_never_probed() -> None:
    service, store, logs, checker = _scheduler([
        _monitor(1, active=False),
        _monitor(2, active=False, last_checked=NOW - timedelta(days=30)),
    ])
    assert await service.run_checks(NOW) == 0
    assert checker.calls == []
    assert logs.entries == []


@pytest.mark.asyncio
async def test_down_probe_still_advances_last_checked() -> None:
    service, store, logs, _ = _scheduler([_monitor(1)], checker=FakeChecker(status="down", code=503))

    await service.run_checks(NOW)

    entry = logs.entries[0]
    assert entry.status == "down"
    assert entry.status_code == 503
    assert entry.response_time_ms == 42
    assert entry.error == "received HTTP 503"
    assert entry.checked_at >= NOW
    assert store.monitors[1].last_checked == NOW


@pytest.mark.asyncio
async def test_second_tick_in_same_window_is_a_no_op() -> None:
    service, _, logs, checker = _scheduler([_monitor(1), _monitor(2, interval=1)])

    assert await service.run_checks(NOW) == 2
    assert await service.run_checks(NOW + timedelta(seconds=30)) == 0
    assert len(checker.calls) == 2
    assert len(logs.entries) == 2

    # Only the 1-minute monitor comes due a minute later
    assert await service.run_checks(NOW + timedelta(minutes=1)) == 1
    assert checker.calls[-1] == "https://site2.example.test/"


@pytest.mark.asyncio
async def test_concurrent_probes_are_capped() -> None:
    checker = FakeChecker(delay=0.02)
    service, _, logs, _ = _scheduler([_monitor(i) for i in range(1, 8)], checker=checker, max_concurrent=3)

    assert await service.run_checks(NOW) == 7
    assert checker.max_active <= 3
    assert len(logs.entries) == 7


@pytest.mark.asyncio
async def test_monitor_with_probe_in_flight_is_not_dispatched_again() -> None:
    checker = FakeChecker()
    checker.gate = asyncio.Event()
    service, _, logs, _ = _scheduler([_monitor(1)], checker=checker)

    first_tick = asyncio.create_task(service.run_checks(NOW))
    await asyncio.sleep(0)
    while not checker.calls:
        await asyncio.sleep(0.001)

    # Overlapping tick while the first probe is still waiting on the network
    assert await service.run_checks(NOW + timedelta(minutes=10)) == 0

    checker.gate.set()
    assert await first_tick == 1
    assert len(checker.calls) == 1
    assert len(logs.entries) == 1


@pytest.mark.asyncio
async def test_store_outage_on_listing_does_not_raise() -> None:
    service, store, _, checker = _scheduler([_monitor(1)])
    store.fail_list = True

    assert await service.run_checks(NOW) == 0
    assert checker.calls == []

    # Next tick recovers on its own
    store.fail_list = False
    assert await service.run_checks(NOW) == 1


@pytest.mark.asyncio
async def test_failed_log_append_leaves_monitor_due_for_retry() -> None:
    service, store, logs, checker = _scheduler([_monitor(1)])
    logs.fail_append = True

    assert await service.run_checks(NOW) == 1
    assert store.monitors[1].last_checked is None

    logs.fail_append = False
    assert await service.run_checks(NOW + timedelta(minutes=1)) == 1
    assert len(logs.entries) == 1
    assert store.monitors[1].last_checked == NOW + timedelta(minutes=1)


@pytest.mark.asyncio
async def test_failure_on_one_monitor_does_not_affect_others() -> None:
    service, store, logs, _ = _scheduler([_monitor(1), _monitor(2)])
    store.fail_update = True

    assert await service.run_checks(NOW) == 2
    assert len(logs.entries) == 2
    assert all(m.last_checked is None for m in store.monitors.values())


@pytest.mark.asyncio
async def test_cleanup_never_prunes_below_uptime_window() -> None:
    service, _, logs, _ = _scheduler([], log_retention=10)
    await service.cleanup_old_logs()
    assert logs.pruned_with == [100]


@pytest.mark.asyncio
async def test_start_and_stop_lifecycle() -> None:
    service, _, _, _ = _scheduler([], tick_seconds=3600)

    service.start()
    assert service.running
    assert service.scheduler.get_job("run_checks") is not None
    assert service.scheduler.get_job("cleanup_old_logs") is not None
    service.start()  # second start is ignored

    await service.stop()
    assert not service.running
    await service.stop()


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_probes() -> None:
    checker = FakeChecker(delay=0.05)
    service, _, logs, _ = _scheduler([_monitor(1)], checker=checker, tick_seconds=3600)
    service.start()
    # Hold the timer's own first tick so only the manual tick below runs
    service.scheduler.pause()

    tick = asyncio.create_task(service.run_checks(NOW))
    while not checker.calls:
        await asyncio.sleep(0.001)

    await service.stop()
    await tick
    assert len(logs.entries) == 1


@pytest.mark.asyncio
async def test_tick_still_loading_monitors_dispatches_nothing_after_stop() -> None:
    service, store, logs, checker = _scheduler([_monitor(1)], tick_seconds=3600)
    store.hold = asyncio.Event()
    service.start()
    service.scheduler.pause()

    tick = asyncio.create_task(service.run_checks(NOW))
    await store.listing.wait()

    stopping = asyncio.create_task(service.stop())
    await asyncio.sleep(0)
    store.hold.set()
    await stopping

    assert tick.done()
    assert await tick == 0
    assert checker.calls == []
    assert logs.entries == []


@pytest.mark.asyncio
async def test_tick_after_stop_is_ignored() -> None:
    service, _, _, checker = _scheduler([_monitor(1)], tick_seconds=3600)
    service.start()
    service.scheduler.pause()
    await service.stop()

    assert await service.run_checks(NOW) == 0
    assert checker.calls == []


@pytest.mark.asyncio
async def test_cancelled_check_still_records_log_and_last_checked() -> None:
    service, store, logs, _ = _scheduler([_monitor(1)])
    logs.hold = asyncio.Event()

    tick = asyncio.create_task(service.run_checks(NOW))
    await logs.appending.wait()

    tick.cancel()
    with pytest.raises(asyncio.CancelledError):
        await tick

    logs.hold.set()
    for _ in range(100):
        if store.monitors[1].last_checked is not None:
            break
        await asyncio.sleep(0.001)

    assert len(logs.entries) == 1
    assert store.monitors[1].last_checked == NOW


@pytest.mark.asyncio
async def test_monitor_deleted_mid_probe_leaves_no_log_for_its_successor(
    monitor_store, log_store, user_store
) -> None:
    alice = await user_store.create(email="alice@example.test", username="alice", password_hash="x")
    bob = await user_store.create(email="bob@example.test", username="bob", password_hash="x")
    doomed = await monitor_store.create(user_id=alice.id, url="https://doomed.example.test/")

    checker = FakeChecker(status="down", code=500)
    checker.gate = asyncio.Event()
    service = SchedulerService(monitors=monitor_store, logs=log_store, checker=checker)

    tick = asyncio.create_task(service.run_checks(NOW))
    while not checker.calls:
        await asyncio.sleep(0.001)

    assert await monitor_store.delete(doomed.id, alice.id) is True
    successor = await monitor_store.create(user_id=bob.id, url="https://fresh.example.test/")

    checker.gate.set()
    assert await tick == 1

    assert successor.id != doomed.id
    assert await log_store.recent_logs(successor.id) == []
    assert await log_store.recent_logs(doomed.id) == []


@pytest.mark.asyncio
async def test_tick_against_real_stores(monitor_store, log_store, user_store) -> None:
    user = await user_store.create(email="ops@example.test", username="ops", password_hash="x")
    monitor = await monitor_store.create(user_id=user.id, url="https://shop.example.test/")
    await monitor_store.create(user_id=user.id, url="https://paused.example.test/", is_active=False)

    checker = FakeChecker(status="blocked", code=403)
    service = SchedulerService(monitors=monitor_store, logs=log_store, checker=checker)

    assert await service.run_checks(NOW) == 1
    assert checker.calls == ["https://shop.example.test/"]

    entries = await log_store.recent_logs(monitor.id)
    assert [(e.status, e.status_code) for e in entries] == [("blocked", 403)]
    refreshed = await monitor_store.get(monitor.id)
    assert refreshed.last_checked == NOW

    assert await service.run_checks(NOW + timedelta(minutes=2)) == 0
