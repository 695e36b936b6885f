"""Job Store: the only shared mutable state between dispatch and generation.

Writers
-------
``begin_attempt`` (dispatcher) inserts a ``generating`` row. ``complete`` and
``fail`` (generator) and ``fail_stale`` (sweeper) move a ``generating`` row to
a terminal state with a conditional UPDATE, so a terminal row is never
written twice. ``discard_attempt`` removes a ``generating`` row whose
generator could not be launched.

Readers
-------
``latest`` and ``get`` return immutable tagged views built from one
committed row, so no torn state is ever observable.
"""

from __future__ import annotations

import typing as typ
import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from plexwrap.common.time import utcnow
from plexwrap.jobs.errors import JobStoreError
from plexwrap.jobs.models import (
    CompletedJob,
    FailedJob,
    GeneratingJob,
    GenerationTicket,
    JobStatus,
    JobView,
    NotStartedJob,
)
from plexwrap.jobs.storage import WrappedJob
from plexwrap.logging import get_logger, log_debug, log_warning

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.engine import CursorResult
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from sqlalchemy.sql import Executable

    from plexwrap.common.time import Clock

logger = get_logger(__name__)

# Retries when two dispatchers pick the same next attempt number.
_MAX_ATTEMPT_RACES = 3


def _to_view(row: WrappedJob) -> JobView:
    """Build the tagged view for *row* according to its status."""
    common = {
        "job_id": row.id,
        "subject_id": row.subject_id,
        "period": row.period,
        "attempt": row.attempt,
    }
    match row.status:
        case JobStatus.GENERATING:
            return GeneratingJob(**common, started_at=row.started_at)
        case JobStatus.COMPLETED:
            return CompletedJob(
                **common,
                started_at=row.started_at,
                finished_at=typ.cast("dt.datetime", row.finished_at),
                result=row.result or {},
            )
        case JobStatus.FAILED:
            return FailedJob(
                **common,
                started_at=row.started_at,
                finished_at=typ.cast("dt.datetime", row.finished_at),
                error=row.error or "",
            )
        case _:
            return NotStartedJob(**common)


def _key_filter(subject_id: str, period: int) -> tuple[typ.Any, ...]:
    return (WrappedJob.subject_id == subject_id, WrappedJob.period == period)


class JobStore:
    """Async persistence for generation attempts.

    Parameters
    ----------
    session_factory
        Factory producing sessions bound to the job database.
    clock
        Source of aware UTC timestamps for ``started_at`` and
        ``finished_at``.

    Raises
    ------
    JobStoreError
        From every method, when the database cannot be reached or rejects a
        statement for a reason other than a lost dispatch race.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock = utcnow,
    ) -> None:
        """Bind the store to a session factory and clock."""
        self._session_factory = session_factory
        self._clock = clock

    async def latest(self, subject_id: str, period: int) -> JobView | None:
        """Return the newest attempt for the key, or ``None`` if none exists."""
        stmt = (
            select(WrappedJob)
            .where(*_key_filter(subject_id, period))
            .order_by(WrappedJob.attempt.desc())
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                row = await session.scalar(stmt)
                return None if row is None else _to_view(row)
        except SQLAlchemyError as exc:
            msg = f"Failed to read latest job for {subject_id}/{period}"
            raise JobStoreError(msg) from exc

    async def get(self, job_id: str) -> JobView | None:
        """Return the attempt with *job_id*, or ``None``."""
        try:
            async with self._session_factory() as session:
                row = await session.get(WrappedJob, job_id)
                return None if row is None else _to_view(row)
        except SQLAlchemyError as exc:
            msg = f"Failed to read job {job_id}"
            raise JobStoreError(msg) from exc

    async def begin_attempt(
        self, subject_id: str, period: int
    ) -> GenerationTicket | None:
        """Insert a new ``generating`` attempt unless one is already running.

        The check and the insert run in one transaction, and the in-flight
        unique index rejects a concurrent winner that slipped between them.
        Either way exactly one caller receives a ticket.

        Returns
        -------
        GenerationTicket | None
            The ticket for the new attempt, or ``None`` when the key already
            has a ``generating`` attempt.

        """
        for _ in range(_MAX_ATTEMPT_RACES):
            try:
                ticket = await self._insert_attempt(subject_id, period)
            except IntegrityError:
                if await self.has_in_flight(subject_id, period):
                    return None
                log_debug(
                    logger,
                    "Attempt number race for %s/%s; retrying",
                    subject_id,
                    period,
                )
                continue
            except SQLAlchemyError as exc:
                msg = f"Failed to start attempt for {subject_id}/{period}"
                raise JobStoreError(msg) from exc
            return ticket

        msg = f"Could not allocate an attempt for {subject_id}/{period}"
        raise JobStoreError(msg)

    async def _insert_attempt(
        self, subject_id: str, period: int
    ) -> GenerationTicket | None:
        async with self._session_factory() as session, session.begin():
            in_flight = await session.scalar(
                select(WrappedJob.id)
                .where(
                    *_key_filter(subject_id, period),
                    WrappedJob.status == JobStatus.GENERATING,
                )
                .limit(1)
            )
            if in_flight is not None:
                return None
            previous = await session.scalar(
                select(func.max(WrappedJob.attempt)).where(
                    *_key_filter(subject_id, period)
                )
            )
            ticket = GenerationTicket(
                job_id=str(uuid.uuid4()),
                subject_id=subject_id,
                period=period,
                attempt=(previous or 0) + 1,
            )
            session.add(
                WrappedJob(
                    id=ticket.job_id,
                    subject_id=subject_id,
                    period=period,
                    attempt=ticket.attempt,
                    status=JobStatus.GENERATING,
                    started_at=self._clock(),
                )
            )
        return ticket

    async def has_in_flight(self, subject_id: str, period: int) -> bool:
        """Return True when the key currently has a ``generating`` attempt."""
        stmt = select(func.count(WrappedJob.id)).where(
            *_key_filter(subject_id, period),
            WrappedJob.status == JobStatus.GENERATING,
        )
        try:
            async with self._session_factory() as session:
                count = await session.scalar(stmt)
        except SQLAlchemyError as exc:
            msg = f"Failed to check in-flight job for {subject_id}/{period}"
            raise JobStoreError(msg) from exc
        return bool(count)

    async def discard_attempt(self, ticket: GenerationTicket) -> bool:
        """Delete an attempt that never reached its generator.

        Only a row still in ``generating`` is removed, which restores the
        previous attempt as the latest one.
        """
        stmt = delete(WrappedJob).where(
            WrappedJob.id == ticket.job_id,
            WrappedJob.status == JobStatus.GENERATING,
        )
        return await self._execute_write(stmt, f"discard job {ticket.job_id}") == 1

    async def complete(self, job_id: str, result: dict[str, typ.Any]) -> bool:
        """Record *result* on a ``generating`` attempt.

        Returns
        -------
        bool
            ``True`` if this call made the terminal write, ``False`` if the
            attempt was already terminal (for example, swept as stale).

        """
        return await self._finish(
            job_id, status=JobStatus.COMPLETED, result=result, error=None
        )

    async def fail(self, job_id: str, error: str) -> bool:
        """Record a user-safe *error* on a ``generating`` attempt."""
        return await self._finish(
            job_id, status=JobStatus.FAILED, result=None, error=error
        )

    async def fail_stale(self, cutoff: dt.datetime, message: str) -> int:
        """Fail every ``generating`` attempt started before *cutoff*.

        Returns the number of attempts moved to ``failed``.
        """
        stmt = (
            update(WrappedJob)
            .where(
                WrappedJob.status == JobStatus.GENERATING,
                WrappedJob.started_at < cutoff,
            )
            .values(status=JobStatus.FAILED, error=message, finished_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(stmt, "sweep stale jobs")

    async def _finish(
        self,
        job_id: str,
        *,
        status: JobStatus,
        result: dict[str, typ.Any] | None,
        error: str | None,
    ) -> bool:
        stmt = (
            update(WrappedJob)
            .where(
                WrappedJob.id == job_id,
                WrappedJob.status == JobStatus.GENERATING,
            )
            .values(
                status=status,
                result=result,
                error=error,
                finished_at=self._clock(),
            )
            .execution_options(synchronize_session=False)
        )
        written = await self._execute_write(stmt, f"finish job {job_id}")
        if written != 1:
            log_warning(
                logger,
                "Job %s was no longer generating; %s outcome dropped",
                job_id,
                status,
            )
        return written == 1

    async def _execute_write(self, stmt: Executable, action: str) -> int:
        try:
            async with self._session_factory() as session, session.begin():
                outcome = typ.cast(
                    "CursorResult[typ.Any]", await session.execute(stmt)
                )
                return outcome.rowcount
        except SQLAlchemyError as exc:
            msg = f"Failed to {action}"
            raise JobStoreError(msg) from exc
