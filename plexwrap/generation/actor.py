"""Dramatiq actors for Wrapped generation and stale-job sweeps.

Usage
-----
Queue one attempt (normally done by ``DramatiqLauncher``):

>>> generate_wrapped_job.send(
...     "postgresql+asyncpg://...",
...     "0b6f...",  # job_id
...     "4d7a...",  # subject_id
...     2024,
...     1,
... )

Queue a sweep of attempts stuck for more than 15 minutes:

>>> sweep_stale_jobs_job.send("postgresql+asyncpg://...", 900.0)

"""

from __future__ import annotations

import asyncio
import datetime as dt
import threading
import typing as typ

import dramatiq
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from plexwrap.accounts.directory import SubjectDirectory
from plexwrap.generation._broker import ensure_broker_configured
from plexwrap.generation.factory import open_wrapped_builder
from plexwrap.generation.generator import WrappedGenerator
from plexwrap.generation.sweeper import StaleJobSweeper
from plexwrap.jobs.models import GenerationTicket, JobStatus
from plexwrap.jobs.store import JobStore

type SessionFactory = async_sessionmaker[AsyncSession]

_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SESSION_FACTORY_CACHE: dict[str, SessionFactory] = {}
_CACHE_LOCK = threading.Lock()

ensure_broker_configured()


def _session_factory_locked(database_url: str) -> SessionFactory:
    """Return the cached session factory, creating engine and factory if absent.

    Precondition: the caller holds ``_CACHE_LOCK``.
    """
    if database_url not in _SESSION_FACTORY_CACHE:
        engine = _ENGINE_CACHE.get(database_url)
        if engine is None:
            # Each message runs in a fresh event loop; pooled connections
            # would outlive the loop they were opened on.
            engine = create_async_engine(database_url, poolclass=NullPool)
            _ENGINE_CACHE[database_url] = engine
        _SESSION_FACTORY_CACHE[database_url] = async_sessionmaker(
            engine, expire_on_commit=False
        )
    return _SESSION_FACTORY_CACHE[database_url]


def _get_session_factory(database_url: str) -> SessionFactory:
    with _CACHE_LOCK:
        return _session_factory_locked(database_url)


async def _generate(database_url: str, ticket: GenerationTicket) -> JobStatus:
    """Run *ticket* with a builder opened and closed on the current loop.

    Only the session factory is cached across messages; HTTP clients are
    bound to the loop that opened them.
    """
    session_factory = _get_session_factory(database_url)
    async with open_wrapped_builder() as builder:
        generator = WrappedGenerator(
            JobStore(session_factory),
            SubjectDirectory(session_factory),
            builder,
        )
        return await generator.run(ticket)


def _run[T](coro_factory: typ.Callable[[], typ.Awaitable[T]]) -> T:
    ensure_broker_configured()

    async def runner() -> T:
        return await coro_factory()

    return asyncio.run(runner())


@dramatiq.actor(max_retries=0)
def generate_wrapped_job(
    database_url: str,
    job_id: str,
    subject_id: str,
    period: int,
    attempt: int,
) -> str:
    """Run one accepted attempt in a worker.

    Retries are disabled: the generator always records an outcome, and a
    redelivered message would find the attempt already terminal.

    Returns
    -------
    str
        The recorded status value.

    """
    ticket = GenerationTicket(
        job_id=job_id, subject_id=subject_id, period=period, attempt=attempt
    )
    status = _run(lambda: _generate(database_url, ticket))
    return status.value


@dramatiq.actor(max_retries=0)
def sweep_stale_jobs_job(database_url: str, stale_after_seconds: float) -> int:
    """Fail attempts that have been ``generating`` longer than the threshold.

    Returns
    -------
    int
        Number of attempts moved to ``failed``.

    """
    store = JobStore(_get_session_factory(database_url))
    sweeper = StaleJobSweeper(store, dt.timedelta(seconds=stale_after_seconds))
    return _run(sweeper.sweep)
