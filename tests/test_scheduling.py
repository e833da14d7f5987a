"""Tests for CancelableTimer and BackgroundTasks."""

import asyncio

import pytest

from smartnotify.notifications.scheduling import BackgroundTasks, CancelableTimer


class TestCancelableTimer:
    @pytest.mark.asyncio
    async def test_fires_after_delay(self):
        calls = []

        async def callback():
            calls.append("fired")

        timer = CancelableTimer(0.02, callback).start()
        assert timer.is_pending
        await timer.wait()
        assert calls == ["fired"]
        assert timer.fired
        assert not timer.is_pending

    @pytest.mark.asyncio
    async def test_cancel_before_firing(self):
        calls = []

        async def callback():
            calls.append("fired")

        timer = CancelableTimer(0.05, callback).start()
        timer.cancel()
        timer.cancel()  # idempotent
        await asyncio.sleep(0.1)
        assert calls == []
        assert not timer.fired
        assert not timer.is_pending

    @pytest.mark.asyncio
    async def test_cancel_after_firing_does_not_interrupt_callback(self):
        done = []

        async def callback():
            await asyncio.sleep(0.05)
            done.append(True)

        timer = CancelableTimer(0.0, callback).start()
        await asyncio.sleep(0.01)
        assert timer.fired
        timer.cancel()
        await timer.wait()
        assert done == [True]

    @pytest.mark.asyncio
    async def test_start_twice_raises(self):
        async def callback():
            pass

        timer = CancelableTimer(0.01, callback).start()
        with pytest.raises(RuntimeError):
            timer.start()
        timer.cancel()

    @pytest.mark.asyncio
    async def test_callback_error_is_logged(self, caplog):
        async def callback():
            raise ValueError("boom")

        timer = CancelableTimer(0.0, callback, name="failing").start()
        await timer.wait()
        assert "Timer callback failing failed" in caplog.text

    @pytest.mark.asyncio
    async def test_wait_on_cancelled_timer_returns(self):
        async def callback():
            pass

        timer = CancelableTimer(1.0, callback).start()
        timer.cancel()
        await timer.wait()
        assert not timer.fired


class TestBackgroundTasks:
    @pytest.mark.asyncio
    async def test_drain_waits_for_nested_spawns(self):
        tasks = BackgroundTasks()
        results = []

        async def inner():
            await asyncio.sleep(0.01)
            results.append("inner")

        async def outer():
            tasks.spawn(inner(), name="inner")
            results.append("outer")

        tasks.spawn(outer(), name="outer")
        await tasks.drain()
        assert results == ["outer", "inner"]
        assert len(tasks) == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        tasks = BackgroundTasks()

        async def broken():
            raise RuntimeError("detached failure")

        tasks.spawn(broken(), name="broken")
        await tasks.drain()
        await asyncio.sleep(0)
        assert "Background task broken failed" in caplog.text

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        tasks = BackgroundTasks()
        finished = []

        async def slow():
            await asyncio.sleep(10)
            finished.append(True)

        tasks.spawn(slow())
        tasks.spawn(slow())
        await tasks.cancel_all()
        assert finished == []
        await asyncio.sleep(0)
        assert len(tasks) == 0
