"""Liveness and readiness probes.

``/health`` answers as long as the process runs. ``/ready`` also checks the
database when the app was built with one, answering 503 while it is
unreachable.

Usage
-----
::

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(session_factory))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from plexwrap.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

__all__ = ["HealthResource", "ReadyResource"]

logger = get_logger(__name__)


class HealthResource:
    """Liveness probe returning ``{"status": "ok"}``."""

    operation_tag = "health.live"

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe.

    Parameters
    ----------
    session_factory
        Optional session factory. When given, each probe runs ``SELECT 1``
        and reports ``{"status": "unavailable"}`` with HTTP 503 on failure.

    """

    operation_tag = "health.ready"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        """Store the optional session factory."""
        self._session_factory = session_factory

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready."""
        if self._session_factory is not None and not await self._database_ok():
            resp.media = {"status": "unavailable"}
            resp.status = HTTPStatus.SERVICE_UNAVAILABLE
            return
        resp.media = {"status": "ready"}
        resp.status = HTTPStatus.OK

    async def _database_ok(self) -> bool:
        factory = typ.cast("async_sessionmaker[AsyncSession]", self._session_factory)
        try:
            async with factory() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            log_warning(logger, "Readiness check failed: %s", exc)
            return False
        return True
