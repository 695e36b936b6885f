"""Application factory for the Plexwrap Falcon ASGI application.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with domain endpoints::

    from plexwrap.api.app import AppDependencies, create_app

    deps = AppDependencies(
        session_factory=session_factory,
        wrapped_service=service,
        gateway=gateway,
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from plexwrap.api.errors import register_error_handlers
from plexwrap.api.gateway import GatewayMiddleware
from plexwrap.api.health.resources import HealthResource, ReadyResource

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from plexwrap.api.gateway import AdminGateway
    from plexwrap.jobs.service import WrappedService

__all__ = ["AppDependencies", "ClosableLauncher", "create_app"]


class ClosableLauncher(typ.Protocol):
    """Launcher that must release its work when the server shuts down."""

    async def aclose(self) -> None:
        """Cancel or hand off outstanding generator work."""
        ...


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    When ``wrapped_service`` and ``gateway`` are both provided, the Wrapped
    routes are mounted behind the gateway middleware. Otherwise only health
    endpoints are registered.

    Attributes
    ----------
    session_factory
        Used by the readiness probe to check the database.
    wrapped_service
        Operations behind the Wrapped routes.
    gateway
        Rate limiting and authorization for protected routes.
    launcher
        Closed on ASGI lifespan shutdown.
    trust_forwarded_headers
        Passed to the gateway middleware for client identification.

    """

    session_factory: async_sessionmaker[AsyncSession] | None = None
    wrapped_service: WrappedService | None = None
    gateway: AdminGateway | None = None
    launcher: ClosableLauncher | None = None
    trust_forwarded_headers: bool = True


class _LauncherLifespan:
    """Close the launcher on ASGI lifespan shutdown."""

    def __init__(self, launcher: ClosableLauncher) -> None:
        self._launcher = launcher

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        await self._launcher.aclose()


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None`` or incomplete, only
        ``/health`` and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    deps = dependencies or AppDependencies()
    service, gateway = deps.wrapped_service, deps.gateway

    middleware: list[object] = []
    if gateway is not None:
        middleware.append(
            GatewayMiddleware(
                gateway, trust_forwarded_headers=deps.trust_forwarded_headers
            )
        )
    if deps.launcher is not None:
        middleware.append(_LauncherLifespan(deps.launcher))

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(deps.session_factory))

    if service is not None and gateway is not None:
        from plexwrap.api.wrapped.resources import (
            BulkGenerateResource,
            WrappedGenerateResource,
            WrappedStatusResource,
        )

        app.add_route(
            "/wrapped/{subject_id}/{period}/generate",
            WrappedGenerateResource(service),
        )
        app.add_route(
            "/wrapped/{subject_id}/{period}/status",
            WrappedStatusResource(service),
        )
        app.add_route(
            "/admin/wrapped/{subject_id}/{period}/generate",
            WrappedGenerateResource(service, admin=True),
        )
        app.add_route(
            "/admin/wrapped/{subject_id}/{period}/status",
            WrappedStatusResource(service, admin=True),
        )
        app.add_route(
            "/admin/wrapped/{period}/generate-all",
            BulkGenerateResource(service),
        )

    register_error_handlers(app)
    return app
