"""Report Generator: run one accepted attempt and record its outcome once.

``WrappedGenerator.run`` always ends with a terminal write for its ticket.
Ordinary exceptions become a ``failed`` outcome with a sanitized message;
cancellation and other ``BaseException`` exits fall through to the
``finally`` block, which records the attempt as interrupted. The write itself
is shielded so a second cancellation cannot abort it. If the store is
unreachable the attempt stays ``generating`` and the stale sweep resolves it.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import time
import typing as typ

from plexwrap.generation.errors import DEFAULT_FAILURE_MESSAGE, WrappedGenerationError
from plexwrap.generation.models import to_result_payload
from plexwrap.jobs.errors import JobStoreError
from plexwrap.jobs.models import JobStatus
from plexwrap.jobs.observability import GenerationEventLogger
from plexwrap.logging import get_logger, log_exception

if typ.TYPE_CHECKING:
    from plexwrap.accounts.directory import SubjectDirectory
    from plexwrap.generation.protocol import WrappedBuilder
    from plexwrap.jobs.models import GenerationTicket
    from plexwrap.jobs.store import JobStore

logger = get_logger(__name__)

INTERRUPTED_MESSAGE = "Wrapped generation was interrupted"


@dc.dataclass(frozen=True, slots=True)
class _Outcome:
    status: JobStatus
    result: dict[str, typ.Any] | None = None
    error: str | None = None
    cause: BaseException | None = None


_INTERRUPTED = _Outcome(status=JobStatus.FAILED, error=INTERRUPTED_MESSAGE)


def public_message_for(exc: BaseException) -> str:
    """Return the message recorded on the job for *exc*."""
    if isinstance(exc, WrappedGenerationError):
        return exc.public_message
    return DEFAULT_FAILURE_MESSAGE


class WrappedGenerator:
    """Execute attempts handed over by a launcher."""

    def __init__(
        self,
        store: JobStore,
        directory: SubjectDirectory,
        builder: WrappedBuilder,
        *,
        event_logger: GenerationEventLogger | None = None,
        timer: typ.Callable[[], float] = time.monotonic,
    ) -> None:
        """Configure the generator with its store, directory and builder."""
        self._store = store
        self._directory = directory
        self._builder = builder
        self._events = event_logger or GenerationEventLogger()
        self._timer = timer

    async def run(self, ticket: GenerationTicket) -> JobStatus:
        """Generate the report for *ticket* and record the outcome.

        Returns
        -------
        JobStatus
            The status stored for the attempt. When the attempt was already
            terminal (for example, swept as stale) the outcome is dropped and
            the stored status is returned instead. If the store cannot be
            reached the attempted status is returned.

        """
        started = self._timer()
        self._events.log_generation_started(ticket)
        outcome = _INTERRUPTED
        try:
            outcome = await self._produce(ticket)
        finally:
            stored = await asyncio.shield(self._record(ticket, outcome, started))
        return stored

    async def _produce(self, ticket: GenerationTicket) -> _Outcome:
        try:
            subject = await self._directory.get(ticket.subject_id)
            if subject is None:
                raise WrappedGenerationError.subject_missing()
            result = await self._builder.build(subject, ticket.period)
        except Exception as exc:  # noqa: BLE001 - every fault becomes a failed job
            return _Outcome(
                status=JobStatus.FAILED,
                error=public_message_for(exc),
                cause=exc,
            )
        return _Outcome(status=JobStatus.COMPLETED, result=to_result_payload(result))

    async def _record(
        self,
        ticket: GenerationTicket,
        outcome: _Outcome,
        started: float,
    ) -> JobStatus:
        duration = dt.timedelta(seconds=self._timer() - started)
        try:
            if outcome.status is JobStatus.COMPLETED:
                written = await self._store.complete(
                    ticket.job_id, typ.cast("dict[str, typ.Any]", outcome.result)
                )
            else:
                written = await self._store.fail(
                    ticket.job_id, outcome.error or DEFAULT_FAILURE_MESSAGE
                )
        except JobStoreError as exc:
            log_exception(
                logger,
                f"Could not record {outcome.status} for job {ticket.job_id}",
                exc,
            )
            return outcome.status

        if not written:
            self._events.log_generation_dropped(ticket, attempted=outcome.status)
            return await self._stored_status(ticket, fallback=outcome.status)

        if outcome is _INTERRUPTED:
            self._events.log_generation_abandoned(ticket)
        elif outcome.cause is not None:
            self._events.log_generation_failed(
                ticket,
                error=outcome.cause,
                public_message=outcome.error or DEFAULT_FAILURE_MESSAGE,
                duration=duration,
            )
        else:
            self._events.log_generation_completed(ticket, duration=duration)
        return outcome.status

    async def _stored_status(
        self, ticket: GenerationTicket, *, fallback: JobStatus
    ) -> JobStatus:
        try:
            view = await self._store.get(ticket.job_id)
        except JobStoreError as exc:
            log_exception(logger, f"Could not read job {ticket.job_id}", exc)
            return fallback
        return fallback if view is None else view.status
