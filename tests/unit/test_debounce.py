"""Unit tests for scheduling and per-key debouncing."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from tdd_rag.watcher.debounce import AsyncioScheduler, Debouncer


class TestDebouncer:
    """Timer slots keyed by path."""

    @pytest.mark.asyncio
    async def test_events_within_window_collapse(self, scheduler):
        action = AsyncMock()
        debouncer = Debouncer(scheduler, 2.0, action)

        debouncer.submit("a.js", 1)
        await scheduler.advance(1.0)
        debouncer.submit("a.js", 2)
        await scheduler.advance(1.5)
        action.assert_not_awaited()

        await scheduler.advance(0.5)
        action.assert_awaited_once_with("a.js", 2)
        assert debouncer.pending() == []

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, scheduler):
        action = AsyncMock()
        debouncer = Debouncer(scheduler, 2.0, action)

        debouncer.submit("a.js", "x")
        await scheduler.advance(1.0)
        debouncer.submit("b.js", "y")
        assert sorted(debouncer.pending()) == ["a.js", "b.js"]

        await scheduler.advance(1.0)
        action.assert_awaited_once_with("a.js", "x")
        await scheduler.advance(1.0)
        assert action.await_count == 2

    @pytest.mark.asyncio
    async def test_cancel_all(self, scheduler):
        action = AsyncMock()
        debouncer = Debouncer(scheduler, 2.0, action)
        debouncer.submit("a.js", 1)

        debouncer.cancel_all()
        await scheduler.advance(5.0)

        action.assert_not_awaited()
        assert debouncer.pending() == []

    @pytest.mark.asyncio
    async def test_failing_action_is_contained(self, scheduler):
        action = AsyncMock(side_effect=RuntimeError("boom"))
        debouncer = Debouncer(scheduler, 1.0, action)

        debouncer.submit("a.js", 1)
        await scheduler.advance(1.0)
        debouncer.submit("a.js", 2)
        await scheduler.advance(1.0)

        assert action.await_count == 2


class TestRepeating:
    """Repeating callbacks built on call_later."""

    @pytest.mark.asyncio
    async def test_call_repeating_until_cancelled(self, scheduler):
        calls = []
        task = scheduler.call_repeating(10.0, lambda: calls.append(scheduler.now))

        await scheduler.advance(35.0)
        task.cancel()
        await scheduler.advance(100.0)

        assert calls == [10.0, 20.0, 30.0]
        assert task.cancelled


class TestAsyncioScheduler:
    """Event-loop backed scheduler."""

    @pytest.mark.asyncio
    async def test_runs_coroutine_callbacks(self):
        scheduler = AsyncioScheduler()
        done = asyncio.Event()

        async def callback():
            done.set()

        scheduler.call_later(0.01, callback)
        await asyncio.wait_for(done.wait(), timeout=1.0)
        await scheduler.drain()

        assert done.is_set()

    @pytest.mark.asyncio
    async def test_cancelled_callback_does_not_run(self):
        scheduler = AsyncioScheduler()
        calls = []

        task = scheduler.call_later(0.01, lambda: calls.append(1))
        task.cancel()
        await asyncio.sleep(0.05)

        assert calls == []
        assert task.cancelled
