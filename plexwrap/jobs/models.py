"""Job states and the tagged views exposed to readers.

A stored attempt is presented as exactly one of ``NotStartedJob``,
``GeneratingJob``, ``CompletedJob`` or ``FailedJob``. Each variant carries
only the fields valid for its status, so ``result`` cannot be read off a
failed job and ``error`` cannot be read off a completed one. The variants are
tagged on ``status`` and encode to the public JSON shape directly.
"""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum
import typing as typ

import msgspec


class JobStatus(enum.StrEnum):
    """Lifecycle states of one generation attempt."""

    NOT_STARTED = "not_started"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return True for states that never transition again."""
        return self in {JobStatus.COMPLETED, JobStatus.FAILED}


class _JobViewBase(msgspec.Struct, kw_only=True, frozen=True, tag_field="status"):
    job_id: str
    subject_id: str
    period: int
    attempt: int


class NotStartedJob(_JobViewBase, tag=JobStatus.NOT_STARTED.value):
    """An attempt that exists but has not begun generating."""

    @property
    def status(self) -> JobStatus:
        """Return ``JobStatus.NOT_STARTED``."""
        return JobStatus.NOT_STARTED


class GeneratingJob(_JobViewBase, tag=JobStatus.GENERATING.value):
    """An attempt whose generator has not yet recorded an outcome."""

    started_at: dt.datetime

    @property
    def status(self) -> JobStatus:
        """Return ``JobStatus.GENERATING``."""
        return JobStatus.GENERATING


class CompletedJob(_JobViewBase, tag=JobStatus.COMPLETED.value):
    """A finished attempt and the report it produced."""

    started_at: dt.datetime
    finished_at: dt.datetime
    result: dict[str, typ.Any]

    @property
    def status(self) -> JobStatus:
        """Return ``JobStatus.COMPLETED``."""
        return JobStatus.COMPLETED


class FailedJob(_JobViewBase, tag=JobStatus.FAILED.value):
    """A finished attempt and the user-safe reason it failed."""

    started_at: dt.datetime
    finished_at: dt.datetime
    error: str

    @property
    def status(self) -> JobStatus:
        """Return ``JobStatus.FAILED``."""
        return JobStatus.FAILED


JobView = NotStartedJob | GeneratingJob | CompletedJob | FailedJob


def public_fields(view: JobView) -> dict[str, typ.Any]:
    """Return the JSON-ready public representation of *view*."""
    return typ.cast("dict[str, typ.Any]", msgspec.to_builtins(view))


def decode_job_view(payload: bytes | str) -> JobView:
    """Decode a JSON status payload into the matching view variant.

    Raises
    ------
    msgspec.ValidationError
        If the payload does not match any variant.

    """
    return msgspec.json.decode(payload, type=JobView)


class GenerationTicket(msgspec.Struct, kw_only=True, frozen=True):
    """Handle for one accepted attempt, passed from dispatcher to generator."""

    job_id: str
    subject_id: str
    period: int
    attempt: int


class DispatchOutcome(enum.StrEnum):
    """Successful outcomes of a dispatch request."""

    ACCEPTED = "accepted"
    ALREADY_IN_FLIGHT = "already_in_flight"


class DispatchResult(msgspec.Struct, kw_only=True, frozen=True):
    """Outcome of ``JobDispatcher.dispatch``.

    ``ticket`` is set only when a new attempt was accepted.
    """

    outcome: DispatchOutcome
    ticket: GenerationTicket | None = None

    @classmethod
    def accepted(cls, ticket: GenerationTicket) -> DispatchResult:
        """Build the result for a newly started attempt."""
        return cls(outcome=DispatchOutcome.ACCEPTED, ticket=ticket)

    @classmethod
    def already_in_flight(cls) -> DispatchResult:
        """Build the result for a key that already has a running attempt."""
        return cls(outcome=DispatchOutcome.ALREADY_IN_FLIGHT)

    @property
    def was_accepted(self) -> bool:
        """Return True when this dispatch started new work."""
        return self.outcome is DispatchOutcome.ACCEPTED
