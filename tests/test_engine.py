"""Tests for run handles and engine discovery."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import failing_engine, finishing_engine, stoppable_engine
from httpcannon import engine as engine_module
from httpcannon.engine import RunHandle, launch, load_engine
from httpcannon.errors import EngineError, EngineUnavailableError, UsageError


def _entry_point(name: str, target) -> MagicMock:
    ep = MagicMock()
    ep.name = name
    ep.load.return_value = target
    return ep


# ---------------------------------------------------------------------------
# RunHandle
# ---------------------------------------------------------------------------


class TestRunHandle:
    @pytest.mark.asyncio
    async def test_done_emitted_once_with_result(self, config, sample_result) -> None:
        done, errors = [], []
        handle = launch(finishing_engine, config)
        handle.on("done", done.append).on("error", errors.append)

        result = await handle.wait()

        assert result == sample_result
        assert done == [sample_result]
        assert errors == []
        assert handle.done()

    @pytest.mark.asyncio
    async def test_error_wrapped_and_emitted(self, config) -> None:
        done, errors = [], []
        handle = launch(failing_engine, config)
        handle.on("done", done.append).on("error", errors.append)

        with pytest.raises(EngineError) as excinfo:
            await handle.wait()

        assert done == []
        assert errors == [excinfo.value]
        assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)
        assert "ECONNREFUSED" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_engine_error_not_rewrapped(self, config) -> None:
        original = EngineError("bailed out after 5 errors")

        async def bailing_engine(config, stop_event):
            raise original

        handle = launch(bailing_engine, config)
        with pytest.raises(EngineError) as excinfo:
            await handle.wait()
        assert excinfo.value is original

    @pytest.mark.asyncio
    async def test_stop_sets_event_and_is_idempotent(self, config) -> None:
        handle = launch(stoppable_engine, config)
        assert not handle.stopping

        handle.stop()
        handle.stop()

        assert handle.stopping
        assert await handle.wait() == {"stopped": True, "requests": {"total": 42}}

    @pytest.mark.asyncio
    async def test_launch_returns_before_engine_runs(self, config) -> None:
        started = []

        async def recording_engine(config, stop_event):
            started.append(config.url)
            return {}

        handle = launch(recording_engine, config)
        assert started == []
        await handle.wait()
        assert started == [config.url]

    @pytest.mark.asyncio
    async def test_cancelled_run_emits_nothing(self, config) -> None:
        done, errors = [], []
        handle = launch(stoppable_engine, config)
        handle.on("done", done.append).on("error", errors.append)
        await asyncio.sleep(0)

        handle._task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await handle.wait()
        await asyncio.sleep(0)

        assert done == []
        assert errors == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, config, sample_result) -> None:
        seen = []

        def broken(result):
            raise RuntimeError("listener broke")

        handle = launch(finishing_engine, config)
        handle.on("done", broken).on("done", seen.append)

        with pytest.raises(RuntimeError, match="listener broke"):
            await handle.wait()
        assert seen == [sample_result]

    @pytest.mark.asyncio
    async def test_first_listener_error_wins(self, config) -> None:
        def first(result):
            raise KeyError("first")

        def second(result):
            raise ValueError("second")

        handle = launch(finishing_engine, config)
        handle.on("done", first).on("done", second)

        with pytest.raises(KeyError):
            await handle.wait()

    @pytest.mark.asyncio
    async def test_unknown_event_rejected(self, config) -> None:
        handle = launch(finishing_engine, config)
        with pytest.raises(ValueError, match="progress"):
            handle.on("progress", print)
        await handle.wait()


# ---------------------------------------------------------------------------
# Engine discovery
# ---------------------------------------------------------------------------


class TestLoadEngine:
    def test_single_engine_loaded(self, monkeypatch) -> None:
        monkeypatch.delenv("HTTPCANNON_ENGINE", raising=False)
        monkeypatch.setattr(
            engine_module, "entry_points", lambda group: [_entry_point("fast", finishing_engine)]
        )
        assert load_engine() is finishing_engine

    def test_engine_selected_by_env(self, monkeypatch) -> None:
        monkeypatch.setenv("HTTPCANNON_ENGINE", "slow")
        monkeypatch.setattr(
            engine_module,
            "entry_points",
            lambda group: [_entry_point("fast", finishing_engine), _entry_point("slow", stoppable_engine)],
        )
        assert load_engine() is stoppable_engine

    def test_no_engine_installed(self, monkeypatch) -> None:
        monkeypatch.setattr(engine_module, "entry_points", lambda group: [])
        with pytest.raises(EngineUnavailableError, match="httpcannon.engines"):
            load_engine()

    def test_unknown_engine_name(self, monkeypatch) -> None:
        monkeypatch.setattr(
            engine_module, "entry_points", lambda group: [_entry_point("fast", finishing_engine)]
        )
        with pytest.raises(EngineUnavailableError, match="unknown engine 'turbo'"):
            load_engine("turbo")

    def test_ambiguous_engines_need_a_name(self, monkeypatch) -> None:
        monkeypatch.delenv("HTTPCANNON_ENGINE", raising=False)
        monkeypatch.setattr(
            engine_module,
            "entry_points",
            lambda group: [_entry_point("fast", finishing_engine), _entry_point("slow", stoppable_engine)],
        )
        with pytest.raises(EngineUnavailableError, match="HTTPCANNON_ENGINE"):
            load_engine()

    def test_unavailable_is_a_usage_error(self) -> None:
        assert issubclass(EngineUnavailableError, UsageError)
