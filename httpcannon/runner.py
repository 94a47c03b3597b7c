# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Run orchestration.

Owns the single engine run of a process: starts it, writes the JSON result,
hands progress reporting to the tracker and turns the first Ctrl-C into a
graceful stop request.
"""

import asyncio
import json
import logging
import signal
import sys
from dataclasses import asdict, is_dataclass
from typing import Any, Callable, Optional, TextIO, Union

from .engine import Engine, RunHandle, launch
from .models import BenchmarkConfig, EarlyExit
from .progress import track

LOGGER = logging.getLogger(__name__)

Tracker = Callable[[RunHandle, BenchmarkConfig, TextIO], None]


class ProcessContext:
    """
    Process-wide resources used by a run: the output streams and SIGINT.

    Create one per process and close it when the run is over.
    """

    def __init__(self, stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None):
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_handler = None

    def is_tty(self) -> bool:
        isatty = getattr(self.stdout, "isatty", None)
        return bool(isatty and isatty())

    def write_json(self, payload: Any) -> None:
        """Write one JSON document and a newline to stdout."""
        if is_dataclass(payload):
            payload = asdict(payload)
        self.stdout.write(json.dumps(payload) + "\n")
        self.stdout.flush()

    def on_interrupt_once(self, callback: Callable[[], None]) -> None:
        """
        Run callback on the first SIGINT only.

        The handler removes itself before calling back, so a second SIGINT
        gets the default KeyboardInterrupt.
        """
        loop = asyncio.get_running_loop()

        def _fire():
            self.close()
            callback()

        try:
            loop.add_signal_handler(signal.SIGINT, _fire)
        except NotImplementedError:
            # No loop signal support (Windows)
            def _handler(signum, frame):
                self.close()
                loop.call_soon_threadsafe(callback)

            self._previous_handler = signal.signal(signal.SIGINT, _handler)
            return
        self._loop = loop

    def close(self) -> None:
        """Remove the interrupt handler if it has not fired yet."""
        if self._loop is not None:
            self._loop.remove_signal_handler(signal.SIGINT)
            self._loop = None
        if self._previous_handler is not None:
            signal.signal(signal.SIGINT, self._previous_handler)
            self._previous_handler = None


class RunOrchestrator:
    """
    Drives one benchmark run.

    Example:
        >>> orchestrator = RunOrchestrator(engine, ProcessContext())
        >>> result = await orchestrator.run(parse_arguments(argv))
    """

    def __init__(
        self,
        engine: Engine,
        context: Optional[ProcessContext] = None,
        tracker: Tracker = track,
    ):
        self._engine = engine
        self._context = context or ProcessContext()
        self._tracker = tracker

    def start(self, outcome: Union[BenchmarkConfig, EarlyExit]) -> Optional[RunHandle]:
        """
        Start the run described by outcome.

        Returns:
            The run handle, or None for an EarlyExit (nothing is started)
        """
        if not isinstance(outcome, BenchmarkConfig):
            return None
        config = outcome

        handle = launch(self._engine, config)
        handle.on("done", lambda result: self._on_done(config, result))
        handle.on("error", self._on_error)

        # Piped JSON still gets a progress stream on stderr
        if not config.json or not self._context.is_tty():
            self._tracker(handle, config, self._context.stderr)

        self._context.on_interrupt_once(lambda: self._on_interrupt(handle))
        return handle

    async def run(self, outcome: Union[BenchmarkConfig, EarlyExit]) -> Any:
        """
        Start the run and wait for it to settle.

        Returns:
            The engine result, or None for an EarlyExit

        Raises:
            EngineError: If the engine failed after starting
        """
        handle = self.start(outcome)
        if handle is None:
            return None
        try:
            return await handle.wait()
        finally:
            self._context.close()

    def _on_done(self, config: BenchmarkConfig, result: Any) -> None:
        LOGGER.debug("Benchmark run completed")
        if config.json:
            self._context.write_json(result)

    def _on_error(self, error: BaseException) -> None:
        LOGGER.error("Benchmark run failed: %s", error)

    def _on_interrupt(self, handle: RunHandle) -> None:
        LOGGER.info("Interrupted, stopping benchmark")
        handle.stop()


async def run_benchmark(
    outcome: Union[BenchmarkConfig, EarlyExit],
    engine: Engine,
    context: Optional[ProcessContext] = None,
    tracker: Tracker = track,
) -> Any:
    """Run one benchmark to completion with a fresh orchestrator."""
    return await RunOrchestrator(engine, context, tracker).run(outcome)
