"""Scheduling primitives for the polling loop.

The poller never sleeps directly. It asks a ``Ticker`` to wait one interval
and passes a ``CancellationToken`` that can cut the wait short, so tests can
substitute a ticker that advances virtual time instantly.
"""

from __future__ import annotations

import asyncio
import time
import typing as typ


class CancellationToken:
    """One-shot cancellation signal shared by a consumer and a poll loop."""

    def __init__(self) -> None:
        """Create an un-cancelled token."""
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        """Return True once ``cancel`` has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation; calling it again has no effect."""
        self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()


@typ.runtime_checkable
class Ticker(typ.Protocol):
    """Clock and interval scheduler used by ``StatusPoller``."""

    def monotonic(self) -> float:
        """Return a monotonically increasing time in seconds."""
        ...

    async def wait(self, interval: float, cancel: CancellationToken) -> bool:
        """Wait *interval* seconds.

        Returns ``True`` when the interval elapsed and ``False`` when
        *cancel* fired first.
        """
        ...


class AsyncioTicker:
    """``Ticker`` backed by the running event loop."""

    def monotonic(self) -> float:
        """Return ``time.monotonic()``."""
        return time.monotonic()

    async def wait(self, interval: float, cancel: CancellationToken) -> bool:
        """Sleep for *interval* unless *cancel* fires first."""
        if cancel.cancelled:
            return False
        try:
            await asyncio.wait_for(cancel.wait(), timeout=interval)
        except TimeoutError:
            return True
        return False
