"""Tests for the timer-driven scrape loop."""

import asyncio
import threading
import time

import pytest

from ldapmetrics.adapters.directory.in_memory import (
    InMemoryConnection,
    InMemoryDirectory,
)
from ldapmetrics.core.metrics import SCRAPE, MetricSink
from ldapmetrics.core.models import SchedulerState
from ldapmetrics.core.scraper import Scraper, next_deadline

pytestmark = [pytest.mark.scraper, pytest.mark.tier(1)]


class SlowDirectory(InMemoryDirectory):
    """In-memory directory whose connect() blocks for a while.

    Tracks how many cycles are dialing at the same time.
    """

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay
        self.dialing = threading.Event()
        self._active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def connect(self, address: str) -> InMemoryConnection:
        with self._lock:
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        self.dialing.set()
        time.sleep(self.delay)
        with self._lock:
            self._active -= 1
        return super().connect(address)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class TestNextDeadline:
    """Tests for next_deadline()."""

    def test_next_grid_point_when_on_time(self) -> None:
        assert next_deadline(100.0, 10.0, 105.0) == 110.0

    def test_missed_ticks_are_dropped(self) -> None:
        """A cycle overrunning two ticks resumes on the next future grid point."""
        assert next_deadline(100.0, 10.0, 125.0) == 130.0

    def test_deadline_equal_to_now_is_skipped(self) -> None:
        assert next_deadline(100.0, 10.0, 110.0) == 120.0


class TestSchedulerLoop:
    """Tests for Scraper.start()."""

    async def test_cancel_before_first_tick_runs_no_cycle(
        self, monitor_directory: InMemoryDirectory, sink: MetricSink, make_config
    ) -> None:
        scraper = Scraper(make_config(interval=60), monitor_directory, sink)
        cancel = asyncio.Event()
        cancel.set()

        await asyncio.wait_for(scraper.start(cancel), timeout=1)

        assert scraper.state is SchedulerState.STOPPED
        assert monitor_directory.connections == []
        assert sink.value(SCRAPE, result="ok") is None

    async def test_runs_one_cycle_per_tick_until_cancelled(
        self, monitor_directory: InMemoryDirectory, sink: MetricSink, make_config
    ) -> None:
        scraper = Scraper(make_config(interval=0.02), monitor_directory, sink)
        cancel = asyncio.Event()
        task = asyncio.create_task(scraper.start(cancel))

        await _wait_for(lambda: (sink.value(SCRAPE, result="ok") or 0) >= 3)
        cancel.set()
        await asyncio.wait_for(task, timeout=1)

        cycles = sink.value(SCRAPE, result="ok")
        assert cycles is not None and cycles >= 3
        assert len(monitor_directory.connections) == cycles
        assert monitor_directory.open_connections == []
        assert scraper.state is SchedulerState.STOPPED

    async def test_cancellation_waits_for_running_cycle(
        self, sink: MetricSink, make_config
    ) -> None:
        directory = SlowDirectory(delay=0.2)
        scraper = Scraper(make_config(interval=0.01), directory, sink)
        cancel = asyncio.Event()
        task = asyncio.create_task(scraper.start(cancel))

        await _wait_for(directory.dialing.is_set)
        assert scraper.state is SchedulerState.SCRAPING
        cancel.set()
        await asyncio.wait_for(task, timeout=2)

        assert sink.value(SCRAPE, result="ok") == 1
        assert directory.open_connections == []
        assert scraper.state is SchedulerState.STOPPED

    async def test_slow_cycles_never_overlap(
        self, sink: MetricSink, make_config
    ) -> None:
        directory = SlowDirectory(delay=0.05)
        scraper = Scraper(make_config(interval=0.01), directory, sink)
        cancel = asyncio.Event()
        task = asyncio.create_task(scraper.start(cancel))

        await _wait_for(lambda: (sink.value(SCRAPE, result="ok") or 0) >= 3)
        cancel.set()
        await asyncio.wait_for(task, timeout=2)

        assert directory.max_active == 1

    async def test_failed_cycles_do_not_stop_the_loop(
        self, directory: InMemoryDirectory, sink: MetricSink, make_config
    ) -> None:
        directory.unreachable.add("ldap://localhost:389")
        scraper = Scraper(make_config(interval=0.01), directory, sink)
        cancel = asyncio.Event()
        task = asyncio.create_task(scraper.start(cancel))

        await _wait_for(lambda: (sink.value(SCRAPE, result="fail") or 0) >= 2)
        cancel.set()
        await asyncio.wait_for(task, timeout=1)

        assert sink.value(SCRAPE, result="ok") is None
