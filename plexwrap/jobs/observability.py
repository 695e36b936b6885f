"""Structured lifecycle events for dispatch, generation and sweeping.

Usage
-----
>>> events = GenerationEventLogger()
>>> events.log_dispatch_accepted(ticket)
>>> events.log_generation_completed(ticket, duration=elapsed)

"""

from __future__ import annotations

import enum
import typing as typ

from plexwrap.logging import get_logger, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    import datetime as dt

    from plexwrap.jobs.models import GenerationTicket, JobStatus

logger = get_logger(__name__)


class GenerationEventType(enum.StrEnum):
    """Event identifiers emitted while a Wrapped job moves through its states."""

    DISPATCH_ACCEPTED = "wrapped.dispatch.accepted"
    DISPATCH_ALREADY_IN_FLIGHT = "wrapped.dispatch.already_in_flight"
    DISPATCH_FAILED = "wrapped.dispatch.failed"
    GENERATION_STARTED = "wrapped.generation.started"
    GENERATION_COMPLETED = "wrapped.generation.completed"
    GENERATION_FAILED = "wrapped.generation.failed"
    GENERATION_ABANDONED = "wrapped.generation.abandoned"
    GENERATION_DROPPED = "wrapped.generation.dropped"
    SWEEP_COMPLETED = "wrapped.sweep.completed"


class GenerationEventLogger:
    """Emit generation lifecycle events via femtologging."""

    def log_dispatch_accepted(self, ticket: GenerationTicket) -> None:
        """Log that a new attempt was stored and handed to a launcher."""
        log_info(
            logger,
            "[%s] job_id=%s subject_id=%s period=%d attempt=%d",
            GenerationEventType.DISPATCH_ACCEPTED,
            ticket.job_id,
            ticket.subject_id,
            ticket.period,
            ticket.attempt,
        )

    def log_dispatch_already_in_flight(self, *, subject_id: str, period: int) -> None:
        """Log a dispatch that found an attempt already running."""
        log_info(
            logger,
            "[%s] subject_id=%s period=%d",
            GenerationEventType.DISPATCH_ALREADY_IN_FLIGHT,
            subject_id,
            period,
        )

    def log_dispatch_failed(
        self,
        *,
        subject_id: str,
        period: int,
        error: BaseException,
    ) -> None:
        """Log a dispatch that could not start an attempt."""
        log_error(
            logger,
            "[%s] subject_id=%s period=%d error_type=%s error_message=%s",
            GenerationEventType.DISPATCH_FAILED,
            subject_id,
            period,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_generation_started(self, ticket: GenerationTicket) -> None:
        """Log that a generator picked up *ticket*."""
        log_info(
            logger,
            "[%s] job_id=%s subject_id=%s period=%d",
            GenerationEventType.GENERATION_STARTED,
            ticket.job_id,
            ticket.subject_id,
            ticket.period,
        )

    def log_generation_completed(
        self,
        ticket: GenerationTicket,
        *,
        duration: dt.timedelta,
    ) -> None:
        """Log a completed attempt and how long it ran."""
        log_info(
            logger,
            "[%s] job_id=%s subject_id=%s period=%d duration_seconds=%.3f",
            GenerationEventType.GENERATION_COMPLETED,
            ticket.job_id,
            ticket.subject_id,
            ticket.period,
            duration.total_seconds(),
        )

    def log_generation_failed(
        self,
        ticket: GenerationTicket,
        *,
        error: BaseException,
        public_message: str,
        duration: dt.timedelta,
    ) -> None:
        """Log a failed attempt with the internal error and the stored message.

        Parameters
        ----------
        ticket
            Attempt that failed.
        error
            The internal exception. It is logged with its traceback and is
            never written to the job row.
        public_message
            The sanitized message recorded on the job.
        duration
            Elapsed runtime before the failure.

        """
        log_error(
            logger,
            "[%s] job_id=%s subject_id=%s period=%d duration_seconds=%.3f "
            "error_type=%s error_message=%s public_message=%s",
            GenerationEventType.GENERATION_FAILED,
            ticket.job_id,
            ticket.subject_id,
            ticket.period,
            duration.total_seconds(),
            type(error).__name__,
            str(error),
            public_message,
            exc_info=error,
        )

    def log_generation_abandoned(self, ticket: GenerationTicket) -> None:
        """Log a generator that exited without producing an outcome."""
        log_warning(
            logger,
            "[%s] job_id=%s subject_id=%s period=%d",
            GenerationEventType.GENERATION_ABANDONED,
            ticket.job_id,
            ticket.subject_id,
            ticket.period,
        )

    def log_generation_dropped(
        self, ticket: GenerationTicket, *, attempted: JobStatus
    ) -> None:
        """Log an outcome discarded because the attempt was already terminal."""
        log_warning(
            logger,
            "[%s] job_id=%s subject_id=%s period=%d attempted=%s",
            GenerationEventType.GENERATION_DROPPED,
            ticket.job_id,
            ticket.subject_id,
            ticket.period,
            attempted,
        )

    def log_sweep_completed(self, *, cutoff: dt.datetime, failed: int) -> None:
        """Log the outcome of a stale-job sweep."""
        log_info(
            logger,
            "[%s] cutoff=%s failed=%d",
            GenerationEventType.SWEEP_COMPLETED,
            cutoff.isoformat(),
            failed,
        )
