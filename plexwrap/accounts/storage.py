"""Tables for subjects (report owners) and their login sessions."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import uuid

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from plexwrap.common.db import Base, UTCDateTime
from plexwrap.common.time import utcnow


class Subject(Base):
    """A person a Wrapped report can be generated for."""

    __tablename__ = "subjects"
    __table_args__ = (
        UniqueConstraint("media_account_id", name="uq_subjects_media_account"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), default=None)
    media_account_id: Mapped[str | None] = mapped_column(String(64), default=None)
    is_admin: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )


class SubjectSession(Base):
    """Opaque bearer session; only the SHA-256 of the token is stored."""

    __tablename__ = "subject_sessions"
    __table_args__ = (
        UniqueConstraint("token_hash", name="uq_subject_sessions_token_hash"),
        Index("ix_subject_sessions_subject", "subject_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    subject_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    expires_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
