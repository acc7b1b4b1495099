"""Cooperative cancellation and run deadlines for long multi-page scrapes."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, TypeVar

from deal_scout.errors import ScrapeCancelled

T = TypeVar("T")


class CancelToken:
    """Cancellation flag plus optional deadline, honoured at every suspension point.

    The driver calls :meth:`check` before each page, sleeps through
    :meth:`sleep` and awaits fetches through :meth:`run`, so a cancelled or
    expired token stops the run at the next wait instead of after it.
    """

    def __init__(
        self,
        *,
        timeout_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._deadline = clock() + timeout_s if timeout_s else None
        self._reason: str | None = None
        self._event: asyncio.Event | None = None

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        self._reason = reason
        if self._event is not None:
            self._event.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._reason is not None or self.expired

    def remaining(self) -> float | None:
        """Seconds left before the deadline (``None`` when unbounded)."""

        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def check(self, *, url: str | None = None, page: int | None = None) -> None:
        if self._reason is not None:
            raise ScrapeCancelled(self._reason, url=url, page=page)
        if self.expired:
            raise ScrapeCancelled("Run deadline exceeded", url=url, page=page)

    def _waiter(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self._reason is not None:
                self._event.set()
        return self._event

    async def sleep(self, seconds: float) -> None:
        """Sleep up to *seconds*, waking early (and raising) on cancel or deadline."""

        self.check()
        if seconds <= 0:
            return
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        try:
            await asyncio.wait_for(self._waiter().wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        self.check()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the token fires first."""

        try:
            self.check()
        except ScrapeCancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._waiter().wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        task.add_done_callback(_retrieve)
        self.check()
        raise ScrapeCancelled("Run deadline exceeded")


def _retrieve(task: asyncio.Future) -> None:
    # An abandoned fetch may still fail while unwinding; mark that error as seen.
    if not task.cancelled():
        task.exception()


__all__ = ["CancelToken"]
