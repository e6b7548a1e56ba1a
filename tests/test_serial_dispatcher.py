"""
Tests for the single-writer dispatcher.
"""

import asyncio
import threading

import pytest

from voice_frontend.utils.serial_dispatcher import SerialDispatcher


class TestSerialDispatcher:
    @pytest.mark.asyncio
    async def test_handlers_never_overlap(self):
        dispatcher = SerialDispatcher()
        await dispatcher.start()
        active = 0
        max_active = 0
        order = []

        async def handler(n):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.005)
            order.append(n)
            active -= 1

        for n in range(5):
            assert dispatcher.post(handler, n) is True
        await dispatcher.drain()
        await dispatcher.stop()

        assert order == [0, 1, 2, 3, 4]
        assert max_active == 1

    @pytest.mark.asyncio
    async def test_submit_returns_result_and_raises(self):
        dispatcher = SerialDispatcher()
        await dispatcher.start()

        assert await dispatcher.submit(lambda a, b: a + b, 2, 3) == 5

        def fail():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await dispatcher.submit(fail)
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_post_from_other_thread(self):
        dispatcher = SerialDispatcher()
        await dispatcher.start()
        seen = []

        thread = threading.Thread(target=lambda: dispatcher.post(seen.append, "from-thread"))
        thread.start()
        await asyncio.to_thread(thread.join)
        await dispatcher.drain()
        await dispatcher.stop()

        assert seen == ["from-thread"]

    @pytest.mark.asyncio
    async def test_posted_errors_go_to_callback_and_worker_survives(self):
        errors = []
        dispatcher = SerialDispatcher(on_error=errors.append)
        await dispatcher.start()

        def fail():
            raise RuntimeError("handler failed")

        dispatcher.post(fail)
        assert await dispatcher.submit(lambda: "still running") == "still running"
        await dispatcher.stop()

        assert len(errors) == 1
        assert isinstance(errors[0], RuntimeError)

    @pytest.mark.asyncio
    async def test_post_when_stopped_is_dropped(self):
        dispatcher = SerialDispatcher()
        assert dispatcher.post(lambda: None) is False

        await dispatcher.start()
        await dispatcher.stop()
        assert dispatcher.is_running is False
        assert dispatcher.post(lambda: None) is False
        with pytest.raises(RuntimeError):
            await dispatcher.submit(lambda: None)
