"""Shared test fixtures for all test modules."""

from __future__ import annotations

import asyncio
import shutil
import tempfile
from collections import deque
from collections.abc import AsyncGenerator, Iterator
from typing import Any, Callable

import pytest

from metricbridge.codec import MetricKey, encode_key
from metricbridge.events import ReconnectEvent, ReportEvent
from metricbridge.profiles import CollectdProfile, GraphiteProfile
from metricbridge.reporter import Reporter

FIXED_NOW = 1000000000.0


class FakeTimer:
    """Timer handle returned by FakeClock.call_later."""

    def __init__(self, when: float, callback: Callable[..., Any], args: tuple) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def event(self) -> Any:
        return self.args[0] if self.args else None


class FakeClock:
    """Deterministic stand-in for loop.call_later.

    Timers only fire when the test calls advance().
    """

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback, args)
        self.timers.append(timer)
        return timer

    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def pending_refreshes(self, key: MetricKey | None = None) -> list[ReportEvent]:
        return [
            t.event
            for t in self.pending()
            if isinstance(t.event, ReportEvent) and (key is None or t.event.key == key)
        ]

    def pending_reconnects(self) -> list[FakeTimer]:
        return [t for t in self.pending() if isinstance(t.event, ReconnectEvent)]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for timer in sorted(self.pending(), key=lambda t: t.when):
            if timer.when <= self.now:
                timer.fired = True
                timer.callback(*timer.args)


class FakeWriter:
    def __init__(self, collector: "FakeCollector") -> None:
        self.collector = collector
        self.closed = False
        self._buffer: list[bytes] = []

    def write(self, data: bytes) -> None:
        self._buffer.append(data)

    async def drain(self) -> None:
        if self.collector.fail_writes or self.closed:
            raise BrokenPipeError("broken pipe")
        for data in self._buffer:
            self.collector.lines.append(data.decode("utf-8"))
        self._buffer.clear()

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None


class FakeReader:
    def __init__(self, collector: "FakeCollector") -> None:
        self.collector = collector

    async def readline(self) -> bytes:
        collector = self.collector
        if collector.silent:
            await asyncio.Event().wait()
        if collector.replies:
            return collector.replies.popleft().encode("utf-8")
        if collector.auto_reply is not None:
            return collector.auto_reply.encode("utf-8")
        return b""


class FakeCollector:
    """In-memory collector that records every line written to it."""

    def __init__(self, auto_reply: str | None = "0 Success\n") -> None:
        self.auto_reply = auto_reply
        self.replies: deque[str] = deque()
        self.lines: list[str] = []
        self.refuse = False
        self.fail_writes = False
        self.silent = False
        self.opened = 0

    async def open(self) -> tuple[FakeReader, FakeWriter]:
        if self.refuse:
            raise ConnectionRefusedError("connection refused")
        self.opened += 1
        return FakeReader(self), FakeWriter(self)

    def describe(self) -> str:
        return "fake:collector"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture
def key() -> MetricKey:
    """The svc/latency mean key used throughout the tests."""
    return encode_key(["svc", "latency"], "mean")


@pytest.fixture
def collectd_profile() -> CollectdProfile:
    return CollectdProfile(
        path="/unused/collectd.sock",
        hostname="h",
        plugin_name="exometer",
        plugin_instance="node1",
    )


@pytest.fixture
def graphite_profile() -> GraphiteProfile:
    return GraphiteProfile(api_key="key", prefix="servers")


@pytest.fixture
def make_reporter(clock: FakeClock) -> Iterator[Callable[..., Reporter]]:
    """Factory for reporters wired to the fake clock.

    Reporters created through it are stopped at teardown by the
    ``reporter`` fixtures or by the test itself.
    """

    def _make(profile: Any, collector: FakeCollector, **kwargs: Any) -> Reporter:
        kwargs.setdefault("read_timeout", 0.05)
        return Reporter(
            profile,
            connector=collector,
            call_later=clock.call_later,
            clock=lambda: FIXED_NOW,
            **kwargs,
        )

    yield _make


@pytest.fixture
async def reporter(
    make_reporter: Callable[..., Reporter],
    collectd_profile: CollectdProfile,
    collector: FakeCollector,
) -> AsyncGenerator[Reporter, None]:
    """Started collectd reporter talking to the fake collector."""
    reporter = make_reporter(collectd_profile, collector)
    await reporter.start()
    yield reporter
    await reporter.stop()


@pytest.fixture
async def graphite_reporter(
    make_reporter: Callable[..., Reporter],
    graphite_profile: GraphiteProfile,
) -> AsyncGenerator[tuple[Reporter, FakeCollector], None]:
    collector = FakeCollector(auto_reply=None)
    reporter = make_reporter(graphite_profile, collector)
    await reporter.start()
    yield reporter, collector
    await reporter.stop()


@pytest.fixture
def socket_dir() -> Iterator[str]:
    """Short temporary directory for unix sockets (paths are length limited)."""
    path = tempfile.mkdtemp(prefix="mb")
    yield path
    shutil.rmtree(path, ignore_errors=True)
