"""Configuration for the request gateway.

Usage
-----
>>> config = GatewayConfig.from_env()
>>> config.admin_max_requests
100

"""

from __future__ import annotations

import dataclasses as dc
import os

from plexwrap.generation.config import parse_bool_env


def _parse_positive_int(env_var: str, default: int) -> int:
    """Read a positive integer env var, falling back to a default."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{env_var} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 1:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


@dc.dataclass(frozen=True, slots=True)
class GatewayConfig:
    """Rate-limit budgets and client identification settings.

    Attributes
    ----------
    admin_max_requests, admin_window_seconds
        Fixed-window budget shared by all ``/admin`` routes.
    user_max_requests, user_window_seconds
        Fixed-window budget shared by the self-service routes.
    trust_forwarded_headers
        Derive the client address from ``X-Forwarded-For`` / ``X-Real-IP``.
        Disable when the API is not behind a proxy that sets them.

    """

    admin_max_requests: int = 100
    admin_window_seconds: int = 60
    user_max_requests: int = 30
    user_window_seconds: int = 60
    trust_forwarded_headers: bool = True

    @classmethod
    def from_env(cls) -> GatewayConfig:
        """Create configuration from ``PLEXWRAP_*`` environment variables.

        Reads ``PLEXWRAP_ADMIN_RATE_LIMIT_MAX``,
        ``PLEXWRAP_ADMIN_RATE_LIMIT_WINDOW_SECONDS``,
        ``PLEXWRAP_USER_RATE_LIMIT_MAX``,
        ``PLEXWRAP_USER_RATE_LIMIT_WINDOW_SECONDS`` and
        ``PLEXWRAP_TRUST_FORWARDED_HEADERS``.

        Raises
        ------
        ValueError
            If a numeric value is not a positive integer.

        """
        return cls(
            admin_max_requests=_parse_positive_int(
                "PLEXWRAP_ADMIN_RATE_LIMIT_MAX", 100
            ),
            admin_window_seconds=_parse_positive_int(
                "PLEXWRAP_ADMIN_RATE_LIMIT_WINDOW_SECONDS", 60
            ),
            user_max_requests=_parse_positive_int("PLEXWRAP_USER_RATE_LIMIT_MAX", 30),
            user_window_seconds=_parse_positive_int(
                "PLEXWRAP_USER_RATE_LIMIT_WINDOW_SECONDS", 60
            ),
            trust_forwarded_headers=parse_bool_env(
                "PLEXWRAP_TRUST_FORWARDED_HEADERS", default=True
            ),
        )
