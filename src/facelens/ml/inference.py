"""Bounded worker pool for CPU-bound stages.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> decode / cascade / render

Waiting for a slot is bounded by the caller's request deadline, not by the pool.
A slot stays taken until its worker thread returns, so the executor never
queues work of its own.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from facelens.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InferencePool:
    """Runs synchronous image work on at most ``max_concurrent`` threads.

    Cancelling an awaiting caller abandons the result only; a call already
    handed to a worker thread runs to completion and holds its slot until then.
    """

    def __init__(self, settings: Settings) -> None:
        self._size = settings.max_concurrent
        self._slots = asyncio.Semaphore(self._size)
        self._executor = ThreadPoolExecutor(max_workers=self._size, thread_name_prefix="facelens-worker")
        self._lock = threading.Lock()
        self._waiting = 0
        self._running = 0

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run ``func(*args)`` on a worker thread once a slot frees up."""
        with self._track_waiting():
            if self._slots.locked():
                logger.debug("All %d workers busy, queueing %s", self._size, getattr(func, "__name__", func))
            await self._slots.acquire()

        loop = asyncio.get_running_loop()
        with self._lock:
            self._running += 1
        try:
            future = self._executor.submit(func, *args)
        except BaseException:
            self._finish(loop)
            raise
        future.add_done_callback(lambda _: self._finish(loop))
        return await asyncio.wrap_future(future)

    @property
    def size(self) -> int:
        return self._size

    @property
    def active_count(self) -> int:
        """Calls holding a slot, including ones whose caller has gone away."""
        with self._lock:
            return self._running

    @property
    def queue_depth(self) -> int:
        """Callers waiting for a free slot."""
        with self._lock:
            return self._waiting

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def _finish(self, loop: asyncio.AbstractEventLoop) -> None:
        # Runs on the worker thread; the semaphore belongs to the event loop.
        with self._lock:
            self._running -= 1
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(self._slots.release)

    @contextmanager
    def _track_waiting(self) -> Iterator[None]:
        with self._lock:
            self._waiting += 1
        try:
            yield
        finally:
            with self._lock:
                self._waiting -= 1

