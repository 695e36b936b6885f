"""Operator command line for Plexwrap.

Usage:
    plexwrap init-db                       # Create tables
    plexwrap create-subject "Ada" --media-account-id 42
    plexwrap issue-session SUBJECT_ID      # Print a bearer token
    plexwrap dispatch SUBJECT_ID 2024      # Start generation, bypassing policy
    plexwrap sweep --stale-after 900       # Fail stuck attempts
    plexwrap watch SUBJECT_ID 2024 --token TOKEN

Environment variables:
    PLEXWRAP_DATABASE_URL - SQLAlchemy URL used by the database commands
    PLEXWRAP_API_URL      - Base URL of the API used by ``watch``
    PLEXWRAP_SESSION_TOKEN - Bearer token used by ``watch``
"""

from __future__ import annotations

import asyncio
import datetime as dt
import sys
import typing as typ

import msgspec
from cyclopts import App, Parameter
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from plexwrap.accounts.directory import SubjectDirectory
from plexwrap.accounts.sessions import DEFAULT_SESSION_TTL, issue_session_token
from plexwrap.api.factory import build_launcher
from plexwrap.common.db import init_storage
from plexwrap.generation.config import GenerationConfig
from plexwrap.generation.launchers import InProcessLauncher
from plexwrap.generation.sweeper import StaleJobSweeper
from plexwrap.jobs.dispatcher import JobDispatcher
from plexwrap.jobs.errors import DispatchFailedError
from plexwrap.jobs.store import JobStore
from plexwrap.logging import configure_logging
from plexwrap.polling.client import PollOutcomeKind, StatusPoller
from plexwrap.polling.config import PollingConfig
from plexwrap.polling.errors import PollingAccessError
from plexwrap.polling.fetchers import HttpStatusFetcher

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

__all__ = ["app", "main"]

app = App(
    name="plexwrap",
    help="Operate Plexwrap Wrapped generation",
    version="0.1.0",
)

DatabaseUrl = typ.Annotated[str, Parameter(env_var="PLEXWRAP_DATABASE_URL")]

_DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///plexwrap.db"


def _emit(payload: object) -> None:
    print(msgspec.json.encode(payload).decode("utf-8"))  # noqa: T201 - CLI output


def _error(message: str) -> None:
    print(message, file=sys.stderr)  # noqa: T201 - CLI output


async def _with_engine[T](
    database_url: str,
    action: typ.Callable[
        [AsyncEngine, async_sessionmaker[AsyncSession]], typ.Awaitable[T]
    ],
) -> T:
    engine = create_async_engine(database_url)
    try:
        return await action(engine, async_sessionmaker(engine, expire_on_commit=False))
    finally:
        await engine.dispose()


@app.command(name="init-db")
def init_db(*, database_url: DatabaseUrl = _DEFAULT_DATABASE_URL) -> int:
    """Create the Plexwrap tables if they do not exist.

    Args:
        database_url: SQLAlchemy URL of the database.

    Returns:
        Exit code (0 for success).

    """

    async def action(engine: AsyncEngine, _factory: object) -> None:
        await init_storage(engine)

    asyncio.run(_with_engine(database_url, action))
    _emit({"initialised": True})
    return 0


@app.command(name="create-subject")
def create_subject(
    name: str,
    *,
    media_account_id: str | None = None,
    email: str | None = None,
    admin: bool = False,
    database_url: DatabaseUrl = _DEFAULT_DATABASE_URL,
) -> int:
    """Register a subject and print its profile.

    Args:
        name: Display name.
        media_account_id: Linked media server account, if any.
        email: Contact address, if any.
        admin: Grant administrator rights.
        database_url: SQLAlchemy URL of the database.

    Returns:
        Exit code (0 for success).

    """

    async def action(
        _engine: object, factory: async_sessionmaker[AsyncSession]
    ) -> object:
        return await SubjectDirectory(factory).create(
            name=name,
            media_account_id=media_account_id,
            email=email,
            is_admin=admin,
        )

    _emit(asyncio.run(_with_engine(database_url, action)))
    return 0


@app.command(name="issue-session")
def issue_session(
    subject_id: str,
    *,
    ttl_days: float = DEFAULT_SESSION_TTL.days,
    database_url: DatabaseUrl = _DEFAULT_DATABASE_URL,
) -> int:
    """Create a session for a subject and print the bearer token.

    Args:
        subject_id: Subject the session belongs to.
        ttl_days: Session lifetime in days.
        database_url: SQLAlchemy URL of the database.

    Returns:
        Exit code (0 for success, 1 when the subject does not exist).

    """

    async def action(_engine: object, factory: async_sessionmaker[AsyncSession]) -> str:
        return await issue_session_token(
            factory, subject_id, ttl=dt.timedelta(days=ttl_days)
        )

    try:
        token = asyncio.run(_with_engine(database_url, action))
    except LookupError as exc:
        _error(str(exc))
        return 1
    _emit({"subject_id": subject_id, "token": token})
    return 0


@app.command
def dispatch(
    subject_id: str,
    period: int,
    *,
    database_url: DatabaseUrl = _DEFAULT_DATABASE_URL,
) -> int:
    """Start generation for one subject, without caller policy checks.

    With the in-process backend the command waits for the generator to
    record its outcome before exiting.

    Args:
        subject_id: Subject to generate for.
        period: Reporting year.
        database_url: SQLAlchemy URL of the database.

    Returns:
        Exit code (0 when accepted or already running, 1 on dispatch failure).

    """
    config = GenerationConfig.from_env()

    async def action(
        _engine: object, factory: async_sessionmaker[AsyncSession]
    ) -> dict[str, typ.Any]:
        launcher = build_launcher(factory, database_url=database_url, config=config)
        store = JobStore(factory)
        try:
            result = await JobDispatcher(store, launcher).dispatch(subject_id, period)
            if isinstance(launcher, InProcessLauncher):
                await launcher.drain()
        finally:
            await launcher.aclose()
        if not result.was_accepted or result.ticket is None:
            return {"already_in_flight": True}
        view = await store.get(result.ticket.job_id)
        return {
            "accepted": True,
            "job_id": result.ticket.job_id,
            "status": None if view is None else view.status.value,
        }

    try:
        payload = asyncio.run(_with_engine(database_url, action))
    except DispatchFailedError as exc:
        _error(exc.public_message)
        return 1
    _emit(payload)
    return 0


@app.command
def sweep(
    *,
    stale_after: float | None = None,
    database_url: DatabaseUrl = _DEFAULT_DATABASE_URL,
) -> int:
    """Fail attempts that have been generating longer than a threshold.

    Args:
        stale_after: Threshold in seconds; defaults to
            ``PLEXWRAP_STALE_JOB_TIMEOUT_SECONDS``.
        database_url: SQLAlchemy URL of the database.

    Returns:
        Exit code (0 for success, 2 when no threshold is configured).

    """
    if stale_after is not None:
        threshold = dt.timedelta(seconds=stale_after)
    else:
        threshold = GenerationConfig.from_env().stale_after
    if threshold is None:
        _error(
            "No stale threshold: pass --stale-after or set "
            "PLEXWRAP_STALE_JOB_TIMEOUT_SECONDS"
        )
        return 2

    async def action(_engine: object, factory: async_sessionmaker[AsyncSession]) -> int:
        return await StaleJobSweeper(JobStore(factory), threshold).sweep()

    _emit({"failed": asyncio.run(_with_engine(database_url, action))})
    return 0


@app.command
def watch(
    subject_id: str,
    period: int,
    *,
    api_url: typ.Annotated[
        str, Parameter(env_var="PLEXWRAP_API_URL")
    ] = "http://localhost:8080",
    token: typ.Annotated[str, Parameter(env_var="PLEXWRAP_SESSION_TOKEN")] = "",
    admin: bool = False,
) -> int:
    """Poll the API until the subject's Wrapped generation finishes.

    Args:
        subject_id: Subject to follow.
        period: Reporting year.
        api_url: Base URL of the Plexwrap API.
        token: Bearer session token.
        admin: Use the administrator status route.

    Returns:
        Exit code (0 when completed, 1 when failed, timed out or refused).

    """

    async def follow() -> int:
        fetcher = HttpStatusFetcher(api_url, token, admin=admin)
        try:
            outcome = await StatusPoller(
                fetcher, config=PollingConfig.from_env()
            ).run(subject_id, period)
        finally:
            await fetcher.aclose()
        _emit(outcome)
        return 0 if outcome.kind is PollOutcomeKind.COMPLETED else 1

    try:
        return asyncio.run(follow())
    except PollingAccessError as exc:
        _error(str(exc))
        return 1


def main() -> int:
    """Entry point for the CLI."""
    configure_logging("WARNING")
    return app()


if __name__ == "__main__":
    sys.exit(main())
