"""Configuration for status polling."""

from __future__ import annotations

import dataclasses as dc
import os

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_POLL_DURATION_SECONDS = 600.0


def _parse_seconds(env_var: str, default: float, *, allow_zero: bool) -> float:
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number of seconds, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 0 or (value == 0 and not allow_zero):
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


@dc.dataclass(frozen=True, slots=True)
class PollingConfig:
    """Cadence and upper bound for a poll loop.

    Attributes
    ----------
    interval_seconds
        Delay between status queries. The first query happens one interval
        after polling starts.
    max_duration_seconds
        Time after which polling gives up on a job that never finishes.
        ``None`` polls until a terminal state or cancellation.

    """

    interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_duration_seconds: float | None = DEFAULT_MAX_POLL_DURATION_SECONDS

    @classmethod
    def from_env(cls) -> PollingConfig:
        """Read the cadence from the environment.

        Uses ``PLEXWRAP_POLL_INTERVAL_SECONDS`` and
        ``PLEXWRAP_POLL_MAX_DURATION_SECONDS``.

        A maximum duration of ``0`` disables the bound.
        """
        interval = _parse_seconds(
            "PLEXWRAP_POLL_INTERVAL_SECONDS",
            DEFAULT_POLL_INTERVAL_SECONDS,
            allow_zero=False,
        )
        max_duration = _parse_seconds(
            "PLEXWRAP_POLL_MAX_DURATION_SECONDS",
            DEFAULT_MAX_POLL_DURATION_SECONDS,
            allow_zero=True,
        )
        return cls(
            interval_seconds=interval,
            max_duration_seconds=max_duration or None,
        )
