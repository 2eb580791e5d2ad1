from __future__ import annotations

import asyncio
import threading
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .common.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class EventLoopThread:
    """Runs one asyncio loop in a daemon thread.

    Flask handlers run on worker threads; every call into the sync core is
    handed to this loop so state is only touched from one place.
    """

    def __init__(self, *, name: str = "attendance-sync-loop"):
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("Event loop thread is not running")
        return self._loop

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        self._ready.wait()

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
            if pending:
                logger.info("Waiting for %d pending tasks before closing the loop", len(pending))
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()

    def run(self, coro: Awaitable[T], *, timeout: float | None = None) -> T:
        """Run a coroutine on the loop and block the calling thread for its result."""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout)

    def call(self, fn: Callable[..., T], *args: Any, timeout: float | None = None) -> T:
        """Run a plain callable on the loop thread."""

        async def _invoke() -> T:
            return fn(*args)

        return self.run(_invoke(), timeout=timeout)

    def stop(self) -> None:
        if self._loop is None or self._thread is None:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._thread = None
        self._loop = None
        self._ready.clear()
