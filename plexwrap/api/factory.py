"""Assemble the Wrapped service graph for the API layer.

``build_app_dependencies()`` wires the job store, launcher, generator,
dispatcher, status query service and gateway around a pre-existing session
factory. The launcher is chosen by ``GenerationConfig.launch_backend``:
``inprocess`` runs generators as tasks on the API loop, ``dramatiq`` sends
them to workers that reach the database through *database_url*.

Usage
-----
Build dependencies for the API layer::

    from plexwrap.api.factory import build_app_dependencies

    deps = build_app_dependencies(session_factory, database_url=url)
    app = create_app(deps)

"""

from __future__ import annotations

import typing as typ

from plexwrap.accounts.directory import SubjectDirectory
from plexwrap.accounts.sessions import DatabaseSessionResolver
from plexwrap.api.app import AppDependencies
from plexwrap.api.config import GatewayConfig
from plexwrap.api.gateway import AdminGateway
from plexwrap.generation.config import GenerationConfig, LaunchBackend
from plexwrap.generation.factory import create_wrapped_builder
from plexwrap.generation.generator import WrappedGenerator
from plexwrap.generation.launchers import DramatiqLauncher, InProcessLauncher
from plexwrap.jobs.dispatcher import JobDispatcher
from plexwrap.jobs.observability import GenerationEventLogger
from plexwrap.jobs.query import StatusQueryService
from plexwrap.jobs.service import WrappedService, WrappedServiceDependencies
from plexwrap.jobs.store import JobStore

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

__all__ = ["build_app_dependencies", "build_launcher"]


def build_launcher(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    database_url: str | None,
    config: GenerationConfig,
    event_logger: GenerationEventLogger | None = None,
) -> InProcessLauncher | DramatiqLauncher:
    """Create the launcher named by ``config.launch_backend``.

    Raises
    ------
    ValueError
        If the Dramatiq backend is selected without a database URL.

    """
    if config.launch_backend is LaunchBackend.DRAMATIQ:
        if not database_url:
            msg = "The dramatiq launch backend requires a database URL"
            raise ValueError(msg)
        return DramatiqLauncher(database_url)

    generator = WrappedGenerator(
        JobStore(session_factory),
        SubjectDirectory(session_factory),
        create_wrapped_builder(config),
        event_logger=event_logger,
    )
    return InProcessLauncher(generator)


def build_app_dependencies(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    database_url: str | None = None,
    generation_config: GenerationConfig | None = None,
    gateway_config: GatewayConfig | None = None,
) -> AppDependencies:
    """Build ``AppDependencies`` with every Wrapped route enabled.

    Parameters
    ----------
    session_factory
        Async session factory shared by the store, directory and resolver.
    database_url
        URL handed to Dramatiq workers; only needed for that backend.
    generation_config, gateway_config
        Settings; read from the environment when omitted.

    Returns
    -------
    AppDependencies
        Dependencies ready for ``create_app``.

    """
    generation = generation_config or GenerationConfig.from_env()
    gateway_settings = gateway_config or GatewayConfig.from_env()
    events = GenerationEventLogger()

    store = JobStore(session_factory)
    launcher = build_launcher(
        session_factory,
        database_url=database_url,
        config=generation,
        event_logger=events,
    )
    service = WrappedService(
        WrappedServiceDependencies(
            store=store,
            dispatcher=JobDispatcher(store, launcher, event_logger=events),
            query=StatusQueryService(store),
            directory=SubjectDirectory(session_factory),
        ),
        generation_enabled=generation.wrapped_enabled,
    )
    gateway = AdminGateway.from_config(
        DatabaseSessionResolver(session_factory), gateway_settings
    )
    return AppDependencies(
        session_factory=session_factory,
        wrapped_service=service,
        gateway=gateway,
        launcher=launcher,
        trust_forwarded_headers=gateway_settings.trust_forwarded_headers,
    )
