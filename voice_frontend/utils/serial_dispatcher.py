"""
Single-writer task queue.

Every external callback (engine thread, audio thread, playback task,
keyboard hook) posts a handler here. One worker task runs the handlers
strictly one at a time, so state machines behind it never see two
transitions at once.
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from .logging_config import get_logger

logger = get_logger("dispatcher")


@dataclass
class _WorkItem:
    handler: Callable
    args: Tuple[Any, ...]
    future: Optional[asyncio.Future] = None


class SerialDispatcher:
    """
    Serializes sync or async handlers onto one asyncio worker.

    ``post`` is safe from any thread. ``submit`` awaits the handler's result
    and must never be awaited from inside a handler (it would wait on itself).
    """

    def __init__(self, name: str = "dispatcher", on_error: Optional[Callable] = None):
        self.name = name
        self._on_error = on_error
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._processed = 0

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue else 0

    async def start(self) -> None:
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(), name=f"{self.name}-worker")
        logger.debug("Dispatcher %s started", self.name)

    async def stop(self) -> None:
        """Cancel the worker. Items still queued are dropped."""
        worker = self._worker
        self._worker = None
        if worker is None:
            return
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass

        if self._queue is not None:
            while not self._queue.empty():
                item = self._queue.get_nowait()
                if item.future is not None and not item.future.done():
                    item.future.cancel()
        logger.debug("Dispatcher %s stopped after %d items", self.name, self._processed)

    def post(self, handler: Callable, *args) -> bool:
        """
        Queue ``handler(*args)`` from any thread.

        Returns:
            False if the dispatcher is not running and the item was dropped
        """
        return self._enqueue(_WorkItem(handler, args))

    async def submit(self, handler: Callable, *args) -> Any:
        """Queue ``handler(*args)`` and wait for its result or exception."""
        future = asyncio.get_running_loop().create_future()
        if not self._enqueue(_WorkItem(handler, args, future)):
            raise RuntimeError(f"Dispatcher {self.name} is not running")
        return await future

    async def drain(self) -> None:
        """Wait until everything posted before this call has run."""
        await self.submit(lambda: None)

    def _enqueue(self, item: _WorkItem) -> bool:
        loop = self._loop
        if loop is None or self._queue is None or not self.is_running:
            logger.debug("Dropping %s: dispatcher not running", _name_of(item.handler))
            return False
        try:
            loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # Loop already closed
            logger.debug("Dropping %s: event loop closed", _name_of(item.handler))
            return False
        return True

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                result = item.handler(*item.args)
                if inspect.isawaitable(result):
                    result = await result
            except asyncio.CancelledError:
                if item.future is not None and not item.future.done():
                    item.future.cancel()
                raise
            except Exception as e:
                if item.future is not None:
                    if not item.future.done():
                        item.future.set_exception(e)
                else:
                    await self._report(item, e)
            else:
                if item.future is not None and not item.future.done():
                    item.future.set_result(result)
            finally:
                self._processed += 1
                self._queue.task_done()

    async def _report(self, item: _WorkItem, error: Exception) -> None:
        if self._on_error is None:
            logger.error("Unhandled error in %s: %s", _name_of(item.handler), error,
                         exc_info=error)
            return
        try:
            outcome = self._on_error(error)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error("Error callback failed for %s: %s", _name_of(item.handler), e)


def _name_of(handler: Callable) -> str:
    return getattr(handler, '__qualname__', None) or repr(handler)
