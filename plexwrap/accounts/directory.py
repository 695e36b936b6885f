"""Read access to subjects for generation and bulk dispatch."""

from __future__ import annotations

import typing as typ

from sqlalchemy import select

from plexwrap.accounts.models import SubjectProfile
from plexwrap.accounts.storage import Subject

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def _to_profile(row: Subject) -> SubjectProfile:
    return SubjectProfile(
        subject_id=row.id,
        name=row.name,
        media_account_id=row.media_account_id,
        is_admin=row.is_admin,
    )


class SubjectDirectory:
    """Look up subjects by identifier.

    Examples
    --------
    >>> directory = SubjectDirectory(session_factory)
    >>> profile = await directory.get("4d7a...")

    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for each lookup."""
        self._session_factory = session_factory

    async def get(self, subject_id: str) -> SubjectProfile | None:
        """Return the subject's profile, or ``None`` if it does not exist."""
        async with self._session_factory() as session:
            row = await session.get(Subject, subject_id)
            return None if row is None else _to_profile(row)

    async def list_with_media_accounts(self) -> list[SubjectProfile]:
        """Return every subject that has linked a media account, oldest first."""
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(Subject)
                .where(Subject.media_account_id.is_not(None))
                .order_by(Subject.created_at, Subject.id)
            )
            return [_to_profile(row) for row in rows]

    async def create(
        self,
        *,
        name: str,
        media_account_id: str | None = None,
        email: str | None = None,
        is_admin: bool = False,
    ) -> SubjectProfile:
        """Insert a subject and return its profile."""
        row = Subject(
            name=name,
            email=email,
            media_account_id=media_account_id,
            is_admin=is_admin,
        )
        async with self._session_factory() as session, session.begin():
            session.add(row)
            await session.flush()
            return _to_profile(row)
