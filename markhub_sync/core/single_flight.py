"""In-flight request deduplication keyed by string.

``SingleFlight.do(key, func)`` runs ``func()`` once per key at a time: callers
arriving while a call for the same key is still running await that call and
get the same result (or the same exception). The key is released as soon as
the call finishes, so a later caller starts a fresh call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    def __init__(self, name: str = "single_flight") -> None:
        self._name = name
        self._calls: dict[str, asyncio.Future[T]] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._calls

    def __len__(self) -> int:
        return len(self._calls)

    async def do(self, key: str, func: Callable[[], Awaitable[T]]) -> T:
        existing = self._calls.get(key)
        if existing is not None:
            logger.debug("single_flight_joined", extra={"group": self._name, "key": key})
            return await asyncio.shield(existing)

        future: asyncio.Future[T] = asyncio.ensure_future(func())
        self._calls[key] = future
        future.add_done_callback(lambda done: self._release(key, done))
        # Shield so that a cancelled caller does not cancel the shared call.
        return await asyncio.shield(future)

    def _release(self, key: str, future: asyncio.Future[T]) -> None:
        if self._calls.get(key) is future:
            del self._calls[key]
        # Retrieve the exception so that an unobserved failure is not reported.
        if not future.cancelled():
            future.exception()

    def clear(self) -> None:
        """Forget every in-flight key; running calls continue for their awaiters."""
        self._calls.clear()
