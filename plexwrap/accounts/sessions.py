"""Bearer-session issue and lookup.

Tokens are random URL-safe strings handed to the client once. The database
keeps only their SHA-256 digest, so a leaked table cannot be replayed.

Usage
-----
Issue a token for a subject and resolve it later::

    token = await issue_session_token(session_factory, subject_id)
    resolver = DatabaseSessionResolver(session_factory)
    caller = await resolver.resolve(token)

"""

from __future__ import annotations

import datetime as dt
import hashlib
import secrets
import typing as typ

from sqlalchemy import select

from plexwrap.accounts.models import CallerSession
from plexwrap.accounts.storage import Subject, SubjectSession
from plexwrap.common.time import utcnow

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from plexwrap.common.time import Clock

DEFAULT_SESSION_TTL = dt.timedelta(days=30)
_TOKEN_BYTES = 32


def hash_session_token(token: str) -> str:
    """Return the hex SHA-256 digest stored for *token*."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@typ.runtime_checkable
class SessionResolver(typ.Protocol):
    """Resolve a presented credential into a caller identity."""

    async def resolve(self, token: str) -> CallerSession | None:
        """Return the caller for *token*, or ``None`` if it is unknown or expired.

        Implementations raise on infrastructure faults; they never return
        ``None`` to hide one.
        """
        ...


class DatabaseSessionResolver:
    """Resolve tokens against the ``subject_sessions`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock = utcnow,
    ) -> None:
        """Store the session factory and the clock used for expiry checks."""
        self._session_factory = session_factory
        self._clock = clock

    async def resolve(self, token: str) -> CallerSession | None:
        """Return the caller bound to *token* when the session is still live."""
        if not token:
            return None
        stmt = (
            select(Subject.id, Subject.is_admin, SubjectSession.expires_at)
            .join(SubjectSession, SubjectSession.subject_id == Subject.id)
            .where(SubjectSession.token_hash == hash_session_token(token))
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).first()
        if row is None:
            return None
        subject_id, is_admin, expires_at = row
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=dt.UTC)
        if expires_at <= self._clock():
            return None
        return CallerSession(subject_id=subject_id, is_admin=bool(is_admin))


async def issue_session_token(
    session_factory: async_sessionmaker[AsyncSession],
    subject_id: str,
    *,
    ttl: dt.timedelta = DEFAULT_SESSION_TTL,
    clock: Clock = utcnow,
) -> str:
    """Create a session for *subject_id* and return the plaintext token.

    Raises
    ------
    LookupError
        If *subject_id* does not exist.

    """
    token = secrets.token_urlsafe(_TOKEN_BYTES)
    async with session_factory() as session, session.begin():
        if await session.get(Subject, subject_id) is None:
            msg = f"No subject with id {subject_id!r}"
            raise LookupError(msg)
        session.add(
            SubjectSession(
                subject_id=subject_id,
                token_hash=hash_session_token(token),
                expires_at=clock() + ttl,
            )
        )
    return token
