"""Value objects describing subjects and authenticated callers."""

from __future__ import annotations

import msgspec


class SubjectProfile(msgspec.Struct, kw_only=True, frozen=True):
    """Read-only projection of a ``Subject`` row.

    Attributes
    ----------
    subject_id
        Primary key of the subject.
    name
        Display name used in generated content.
    media_account_id
        Identifier of the linked media-server account, or ``None`` when the
        subject has not linked one. Wrapped generation requires it.
    is_admin
        Whether the subject holds administrator rights.

    """

    subject_id: str
    name: str
    media_account_id: str | None = None
    is_admin: bool = False


class CallerSession(msgspec.Struct, kw_only=True, frozen=True):
    """Identity established for one request and passed explicitly downstream."""

    subject_id: str
    is_admin: bool = False

    def may_act_for(self, subject_id: str) -> bool:
        """Return True when the caller is *subject_id* or an administrator."""
        return self.is_admin or self.subject_id == subject_id
