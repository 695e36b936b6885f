"""Granian entrypoint for the Plexwrap API.

``create_app`` is the factory Granian imports in each worker. It reads the
environment on every call, so a worker started with
``PLEXWRAP_DATABASE_URL`` serves the Wrapped routes and one started
without it serves only ``/health`` and ``/ready``.

Environment
-----------
``PLEXWRAP_HOST``
    Bind address, default ``0.0.0.0``.
``PLEXWRAP_PORT``
    Listen port, default ``8080``.
``PLEXWRAP_WORKERS``
    Granian worker processes, default ``1``. Each worker owns its own
    in-process launcher.
``PLEXWRAP_LOG_LEVEL``
    femtologging level name, default ``INFO``.
``PLEXWRAP_DATABASE_URL``
    SQLAlchemy URL; mounts the Wrapped routes when set.

Generation, gateway and polling settings are read by their own config
classes (see ``GenerationConfig.from_env`` and ``GatewayConfig.from_env``).
"""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ

from plexwrap.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

    from plexwrap.api.app import AppDependencies

__all__ = ["RuntimeSettings", "create_app", "main"]

logger = get_logger(__name__)

APP_FACTORY = "plexwrap.runtime:create_app"
_PORT_RANGE = range(1, 65536)
_DEFAULT_HOST = "0.0.0.0"  # noqa: S104 - containers bind every interface
_DEFAULT_PORT = 8080


def _parse_port(port_str: str) -> int:
    """Return *port_str* as a TCP port, exiting with status 1 if invalid."""
    try:
        port = int(port_str)
    except ValueError:
        port = 0
    if port not in _PORT_RANGE:
        log_error(
            logger,
            "Invalid PLEXWRAP_PORT value: %r (must be %d-%d)",
            port_str,
            _PORT_RANGE.start,
            _PORT_RANGE.stop - 1,
        )
        raise SystemExit(1)
    return port


def _parse_workers(raw: str) -> int:
    try:
        workers = int(raw)
    except ValueError:
        workers = 0
    if workers < 1:
        log_error(logger, "Invalid PLEXWRAP_WORKERS value: %r", raw)
        raise SystemExit(1)
    return workers


@dc.dataclass(frozen=True, slots=True)
class RuntimeSettings:
    """Process-level server settings."""

    host: str = _DEFAULT_HOST
    port: int = _DEFAULT_PORT
    workers: int = 1
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> RuntimeSettings:
        """Read the server settings, exiting on invalid values."""
        return cls(
            host=os.environ.get("PLEXWRAP_HOST", _DEFAULT_HOST),
            port=_parse_port(os.environ.get("PLEXWRAP_PORT", str(_DEFAULT_PORT))),
            workers=_parse_workers(os.environ.get("PLEXWRAP_WORKERS", "1")),
            log_level=os.environ.get("PLEXWRAP_LOG_LEVEL", "INFO"),
        )


def _dependencies_for(database_url: str) -> AppDependencies:
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from plexwrap.api.factory import build_app_dependencies

    engine = create_async_engine(database_url, pool_pre_ping=True)
    return build_app_dependencies(
        async_sessionmaker(engine, expire_on_commit=False),
        database_url=database_url,
    )


def create_app() -> falcon.asgi.App:
    """Build the application this worker should serve."""
    from plexwrap.api.app import create_app as build_api

    database_url = os.environ.get("PLEXWRAP_DATABASE_URL", "").strip()
    if not database_url:
        log_info(logger, "PLEXWRAP_DATABASE_URL unset; serving health probes only")
        return build_api()
    return build_api(_dependencies_for(database_url))


def main() -> None:
    """Configure logging and serve ``create_app`` with Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    settings = RuntimeSettings.from_env()
    level, invalid = configure_logging(settings.log_level)
    if invalid:
        log_warning(
            logger,
            "Invalid PLEXWRAP_LOG_LEVEL %r, falling back to %s",
            settings.log_level,
            level,
        )
    log_info(
        logger,
        "Starting Plexwrap on %s:%d with %d worker(s)",
        settings.host,
        settings.port,
        settings.workers,
    )
    Granian(
        APP_FACTORY,
        address=settings.host,
        port=settings.port,
        workers=settings.workers,
        interface=Interfaces.ASGI,
        factory=True,
    ).serve()


if __name__ == "__main__":
    main()
