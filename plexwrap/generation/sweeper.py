"""Recover attempts whose generator died without recording an outcome."""

from __future__ import annotations

import typing as typ

from plexwrap.common.time import utcnow
from plexwrap.jobs.observability import GenerationEventLogger

if typ.TYPE_CHECKING:
    import datetime as dt

    from plexwrap.common.time import Clock
    from plexwrap.jobs.store import JobStore

STALE_JOB_MESSAGE = "Wrapped generation timed out"


class StaleJobSweeper:
    """Fail ``generating`` attempts older than a threshold.

    Parameters
    ----------
    store
        Job store to sweep.
    stale_after
        Minimum age of an attempt before it is considered abandoned.
    clock
        Source of the current time.

    """

    def __init__(
        self,
        store: JobStore,
        stale_after: dt.timedelta,
        *,
        clock: Clock = utcnow,
        event_logger: GenerationEventLogger | None = None,
    ) -> None:
        """Configure the sweeper."""
        if stale_after.total_seconds() <= 0:
            msg = f"stale_after must be positive, got {stale_after}"
            raise ValueError(msg)
        self._store = store
        self._stale_after = stale_after
        self._clock = clock
        self._events = event_logger or GenerationEventLogger()

    async def sweep(self) -> int:
        """Fail every stale attempt and return how many were failed."""
        cutoff = self._clock() - self._stale_after
        failed = await self._store.fail_stale(cutoff, STALE_JOB_MESSAGE)
        self._events.log_sweep_completed(cutoff=cutoff, failed=failed)
        return failed
