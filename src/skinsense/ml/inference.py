"""Runs the synchronous classifier off the event loop.

At most ``max_concurrent`` classifications run on the worker threads; further
requests wait for a slot for up to ``SEMAPHORE_TIMEOUT_SECONDS`` and then fail
with TimeoutError, which the routes turn into a 503.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from skinsense.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEMAPHORE_TIMEOUT_SECONDS: float = 5.0

_WAITING = "waiting"
_RUNNING = "running"


class InferencePool:
    """Bounded worker pool for classification requests, with live gauges for /health."""

    def __init__(self, settings: Settings) -> None:
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="skinsense-inference",
        )
        self._gauges: Counter[str] = Counter()
        self._gauge_lock = threading.Lock()

    @contextmanager
    def _gauge(self, name: str) -> Iterator[None]:
        with self._gauge_lock:
            self._gauges[name] += 1
        try:
            yield
        finally:
            with self._gauge_lock:
                self._gauges[name] -= 1

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Call ``func(*args)`` on a worker thread once a slot is free.

        Raises:
            TimeoutError: If no slot frees up within the timeout.
        """
        with self._gauge(_WAITING):
            await asyncio.wait_for(self._slots.acquire(), timeout=SEMAPHORE_TIMEOUT_SECONDS)

        try:
            with self._gauge(_RUNNING):
                return await asyncio.get_running_loop().run_in_executor(self._executor, func, *args)
        finally:
            self._slots.release()

    @property
    def active_count(self) -> int:
        """Classifications currently running."""
        with self._gauge_lock:
            return self._gauges[_RUNNING]

    @property
    def queue_depth(self) -> int:
        """Requests waiting for a free slot."""
        with self._gauge_lock:
            return self._gauges[_WAITING]

    def shutdown(self) -> None:
        """Wait for running work, then stop the worker threads."""
        self._executor.shutdown(wait=True)
        logger.debug("Inference pool shut down")
