"""Counting permit pool that bounds concurrent optimization chains."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from ..config.constants import DEFAULT_MAX_CONCURRENT_TASKS

if TYPE_CHECKING:
    from collections.abc import Iterator

LOG = logging.getLogger(__name__)


class PermitPool:
    """
    Fixed-size pool of permits.

    Acquisition blocks until a permit is free and has no timeout. Callers
    should use ``permit()`` so the release happens on every exit path.
    """

    def __init__(self, size: int = DEFAULT_MAX_CONCURRENT_TASKS) -> None:
        if size < 1:
            msg = f"Permit pool size must be at least 1, got {size}"
            raise ValueError(msg)
        self.size = size
        self._semaphore = threading.BoundedSemaphore(size)
        self._lock = threading.Lock()
        self._in_use = 0
        self._peak = 0

    @property
    def in_use(self) -> int:
        """Number of permits currently held."""
        with self._lock:
            return self._in_use

    @property
    def peak(self) -> int:
        """Highest number of permits held at the same time."""
        with self._lock:
            return self._peak

    def acquire(self) -> None:
        """Take one permit, blocking while the pool is exhausted."""
        self._semaphore.acquire()
        with self._lock:
            self._in_use += 1
            self._peak = max(self._peak, self._in_use)
            LOG.debug("Permit acquired (%d/%d in use)", self._in_use, self.size)

    def release(self) -> None:
        """Give one permit back to the pool."""
        with self._lock:
            self._in_use -= 1
            LOG.debug("Permit released (%d/%d in use)", self._in_use, self.size)
        self._semaphore.release()

    @contextmanager
    def permit(self) -> Iterator[None]:
        """Hold one permit for the duration of the block."""
        self.acquire()
        try:
            yield
        finally:
            self.release()
