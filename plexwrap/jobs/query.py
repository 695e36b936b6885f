"""Status Query Service: read-only lookup of the latest attempt."""

from __future__ import annotations

import typing as typ

from plexwrap.jobs.errors import JobNotFoundError

if typ.TYPE_CHECKING:
    from plexwrap.jobs.models import JobView
    from plexwrap.jobs.store import JobStore


class StatusQueryService:
    """Answer ``query(subject_id, period)`` from the job store.

    The service never writes. A key that has never been dispatched raises
    ``JobNotFoundError``; once dispatch has returned, the key always has at
    least a ``generating`` attempt, so callers polling after dispatch never
    see it.
    """

    def __init__(self, store: JobStore) -> None:
        """Store the job store used for lookups."""
        self._store = store

    async def query(self, subject_id: str, period: int) -> JobView:
        """Return the latest attempt's view for the key.

        Raises
        ------
        JobNotFoundError
            If no attempt exists for the key.
        JobStoreError
            If the store cannot be read.

        """
        view = await self._store.latest(subject_id, period)
        if view is None:
            raise JobNotFoundError(subject_id, period)
        return view
