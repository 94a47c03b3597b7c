# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Benchmark engine handles.

An engine is any coroutine function ``engine(config, stop_event)`` that runs
one benchmark and returns its result. It should finish early, with whatever
it has measured so far, once ``stop_event`` is set.

Example:
    >>> async def engine(config, stop_event):
    ...     await stop_event.wait()
    ...     return {"requests": {"total": 0}}
    >>>
    >>> handle = launch(engine, config)
    >>> handle.on("done", print)
    >>> handle.stop()
"""

import asyncio
import logging
import os
from importlib.metadata import entry_points
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .errors import EngineError, EngineUnavailableError
from .models import BenchmarkConfig

LOGGER = logging.getLogger(__name__)

ENGINE_GROUP = "httpcannon.engines"

EVENTS = ("done", "error")

Engine = Callable[[BenchmarkConfig, asyncio.Event], Awaitable[Any]]
Listener = Callable[[Any], None]


class RunHandle:
    """
    A running benchmark.

    Emits ``done(result)`` exactly once when the engine returns, or
    ``error(EngineError)`` at most once when it fails. A cancelled run
    emits neither.

    A listener that raises does not stop the others; the first such
    exception is re-raised from wait().
    """

    def __init__(self, task: asyncio.Task, stop_event: asyncio.Event):
        self._task = task
        self._stop_event = stop_event
        self._listeners: Dict[str, List[Listener]] = {event: [] for event in EVENTS}
        self._listener_error: Optional[Exception] = None
        self._settled = task.get_loop().create_future()
        task.add_done_callback(self._settle)

    def on(self, event: str, listener: Listener) -> "RunHandle":
        """Subscribe to 'done' or 'error'."""
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event}")
        self._listeners[event].append(listener)
        return self

    def stop(self) -> None:
        """Ask the engine to wind down. Safe to call more than once."""
        if not self._stop_event.is_set():
            LOGGER.debug("Graceful stop requested")
            self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> Any:
        """Wait for the run to finish and return its result, or raise its error."""
        result = await self._task
        await self._settled
        if self._listener_error is not None:
            raise self._listener_error
        return result

    def _settle(self, task: asyncio.Task) -> None:
        try:
            if task.cancelled():
                LOGGER.debug("Benchmark run cancelled")
                return
            error = task.exception()
            if error is not None:
                self._emit("error", error)
            else:
                self._emit("done", task.result())
        finally:
            self._settled.set_result(None)

    def _emit(self, event: str, payload: Any) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(payload)
            except Exception as e:
                LOGGER.error("'%s' listener failed: %s", event, e)
                if self._listener_error is None:
                    self._listener_error = e


async def _drive(engine: Engine, config: BenchmarkConfig, stop_event: asyncio.Event) -> Any:
    try:
        return await engine(config, stop_event)
    except EngineError:
        raise
    except Exception as e:
        raise EngineError(f"Benchmark engine failed: {e}") from e


def launch(engine: Engine, config: BenchmarkConfig) -> RunHandle:
    """Start one benchmark run on the running event loop and return its handle."""
    stop_event = asyncio.Event()
    task = asyncio.get_running_loop().create_task(_drive(engine, config, stop_event))
    LOGGER.debug("Started benchmark run against %s", config.url)
    return RunHandle(task, stop_event)


def load_engine(name: Optional[str] = None) -> Engine:
    """
    Load an installed engine from the ``httpcannon.engines`` entry-point group.

    Args:
        name: Entry-point name; defaults to $HTTPCANNON_ENGINE, then to the
            only installed engine

    Raises:
        EngineUnavailableError: If no engine (or no engine by that name) is installed
    """
    name = name or os.environ.get("HTTPCANNON_ENGINE")
    available = {ep.name: ep for ep in entry_points(group=ENGINE_GROUP)}

    if not available:
        raise EngineUnavailableError(
            "Error: no benchmark engine installed.\n"
            f"  Install a package that registers one under the '{ENGINE_GROUP}' entry-point group."
        )
    if name is None:
        if len(available) > 1:
            raise EngineUnavailableError(
                f"Error: several engines installed ({', '.join(sorted(available))}).\n"
                "  Choose one with the HTTPCANNON_ENGINE environment variable."
            )
        name = next(iter(available))
    if name not in available:
        raise EngineUnavailableError(
            f"Error: unknown engine '{name}'. Installed: {', '.join(sorted(available))}"
        )

    LOGGER.debug("Using engine '%s'", name)
    return available[name].load()
