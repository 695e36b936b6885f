"""Subjects, sessions and the subject directory."""

from __future__ import annotations

from .directory import SubjectDirectory
from .models import CallerSession, SubjectProfile
from .sessions import (
    DatabaseSessionResolver,
    SessionResolver,
    hash_session_token,
    issue_session_token,
)
from .storage import Subject, SubjectSession

__all__ = [
    "CallerSession",
    "DatabaseSessionResolver",
    "SessionResolver",
    "Subject",
    "SubjectDirectory",
    "SubjectProfile",
    "SubjectSession",
    "hash_session_token",
    "issue_session_token",
]
