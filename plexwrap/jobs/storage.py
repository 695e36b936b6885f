"""Persistence model for Wrapped generation attempts.

Each row is one attempt for a ``(subject_id, period)`` key. A new attempt
never overwrites an older one; readers take the highest ``attempt``. The
partial unique index ``uq_wrapped_jobs_in_flight`` admits at most one
``generating`` row per key and is the compare-and-set that serialises
concurrent dispatches.
"""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ
import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from plexwrap.accounts.storage import Subject  # noqa: F401 - registers the FK target
from plexwrap.common.db import Base, UTCDateTime, init_storage
from plexwrap.common.time import utcnow
from plexwrap.jobs.models import JobStatus

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

_IN_FLIGHT_PREDICATE = text("status = 'generating'")


class WrappedJob(Base):
    """One generation attempt and, once terminal, its outcome."""

    __tablename__ = "wrapped_jobs"
    __table_args__ = (
        UniqueConstraint(
            "subject_id", "period", "attempt", name="uq_wrapped_jobs_attempt"
        ),
        Index(
            "uq_wrapped_jobs_in_flight",
            "subject_id",
            "period",
            unique=True,
            sqlite_where=_IN_FLIGHT_PREDICATE,
            postgresql_where=_IN_FLIGHT_PREDICATE,
        ),
        Index("ix_wrapped_jobs_status_started", "status", "started_at"),
        CheckConstraint(
            "(status != 'completed') OR (result IS NOT NULL AND error IS NULL)",
            name="ck_wrapped_jobs_completed_has_result",
        ),
        CheckConstraint(
            "(status != 'failed') OR (error IS NOT NULL AND result IS NULL)",
            name="ck_wrapped_jobs_failed_has_error",
        ),
        CheckConstraint(
            "(status NOT IN ('not_started', 'generating')) "
            "OR (result IS NULL AND error IS NULL AND finished_at IS NULL)",
            name="ck_wrapped_jobs_open_has_no_outcome",
        ),
        CheckConstraint("attempt >= 1", name="ck_wrapped_jobs_attempt_positive"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    subject_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False
    )
    period: Mapped[int] = mapped_column(Integer(), nullable=False)
    attempt: Mapped[int] = mapped_column(Integer(), nullable=False)
    status: Mapped[JobStatus] = mapped_column(
        Enum(
            JobStatus,
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            validate_strings=True,
            length=16,
        ),
        nullable=False,
    )
    result: Mapped[dict[str, typ.Any] | None] = mapped_column(
        JSON(none_as_null=True), default=None
    )
    error: Mapped[str | None] = mapped_column(Text(), default=None)
    started_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    finished_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)


async def init_job_storage(engine: AsyncEngine) -> None:
    """Create the subject and job tables if absent."""
    await init_storage(engine)
