"""Shared fixtures for httpcannon tests."""

from __future__ import annotations

import asyncio
import io
from typing import Any, Callable, Optional

import pytest

from httpcannon.models import BenchmarkConfig
from httpcannon.runner import ProcessContext


class FakeStream(io.StringIO):
    """StringIO that can pretend to be a terminal."""

    def __init__(self, tty: bool = False):
        super().__init__()
        self._tty = tty

    def isatty(self) -> bool:
        return self._tty


class FakeProcessContext(ProcessContext):
    """ProcessContext that records the interrupt callback instead of touching SIGINT."""

    def __init__(self, tty: bool = False):
        super().__init__(stdout=FakeStream(tty), stderr=FakeStream())
        self.interrupt_callback: Optional[Callable[[], None]] = None
        self.interrupt_installs = 0
        self.closed = False

    def on_interrupt_once(self, callback: Callable[[], None]) -> None:
        self.interrupt_installs += 1
        self.interrupt_callback = callback

    def interrupt(self) -> None:
        callback, self.interrupt_callback = self.interrupt_callback, None
        if callback is not None:
            callback()

    def close(self) -> None:
        self.closed = True


SAMPLE_RESULT = {
    "title": None,
    "url": "http://localhost:3000/",
    "duration": 10,
    "errors": 2,
    "timeouts": 1,
    "non2xx": 0,
    "latency": {"p2_5": 1.0, "p50": 2.0, "p97_5": 5.0, "p99": 7.0, "average": 2.4, "stddev": 0.8, "max": 12.0},
    "requests": {"p2_5": 900.0, "p50": 1000.0, "p97_5": 1100.0, "p99": 1150.0, "average": 1001.5, "stddev": 40.0, "max": 1200.0, "total": 10015},
    "throughput": {"p2_5": 1e5, "p50": 1.1e5, "p97_5": 1.2e5, "p99": 1.3e5, "average": 1.1e5, "stddev": 5e3, "max": 1.4e5, "total": 1100000},
}


@pytest.fixture
def config() -> BenchmarkConfig:
    return BenchmarkConfig(url="http://localhost:3000/")


@pytest.fixture
def json_config() -> BenchmarkConfig:
    return BenchmarkConfig(url="http://localhost:3000/", json=True)


@pytest.fixture
def context() -> FakeProcessContext:
    return FakeProcessContext()


@pytest.fixture
def tty_context() -> FakeProcessContext:
    return FakeProcessContext(tty=True)


@pytest.fixture
def sample_result() -> dict:
    return dict(SAMPLE_RESULT)


async def finishing_engine(config: BenchmarkConfig, stop_event: asyncio.Event) -> Any:
    await asyncio.sleep(0)
    return dict(SAMPLE_RESULT)


async def stoppable_engine(config: BenchmarkConfig, stop_event: asyncio.Event) -> Any:
    await stop_event.wait()
    return {"stopped": True, "requests": {"total": 42}}


async def failing_engine(config: BenchmarkConfig, stop_event: asyncio.Event) -> Any:
    await asyncio.sleep(0)
    raise ConnectionRefusedError("connect ECONNREFUSED 127.0.0.1:3000")
