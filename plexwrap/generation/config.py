"""Configuration for Wrapped generation.

Usage
-----
Load from environment variables:

>>> import os
>>> os.environ["PLEXWRAP_STALE_JOB_TIMEOUT_SECONDS"] = "900"
>>> config = GenerationConfig.from_env()
>>> config.stale_after
datetime.timedelta(seconds=900)

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import os

from plexwrap.generation.errors import GenerationConfigError

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class LaunchBackend(enum.StrEnum):
    """Where accepted attempts run."""

    INPROCESS = "inprocess"
    DRAMATIQ = "dramatiq"


class BuilderBackend(enum.StrEnum):
    """Which ``WrappedBuilder`` implementation generates content."""

    MOCK = "mock"
    STATISTICS = "statistics"


def parse_bool_env(env_var: str, *, default: bool) -> bool:
    """Read a boolean flag such as ``1``, ``true``, ``yes`` or ``off``."""
    raw = os.environ.get(env_var, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise GenerationConfigError.invalid_choice(
        env_var, raw, _TRUE_VALUES | _FALSE_VALUES
    )


def _parse_choice[E: enum.StrEnum](env_var: str, enum_cls: type[E], default: E) -> E:
    raw = os.environ.get(env_var, "").strip().lower()
    if not raw:
        return default
    try:
        return enum_cls(raw)
    except ValueError as exc:
        choices = frozenset(member.value for member in enum_cls)
        raise GenerationConfigError.invalid_choice(env_var, raw, choices) from exc


def _parse_optional_seconds(env_var: str) -> dt.timedelta | None:
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return None
    try:
        seconds = float(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number of seconds, got: {raw!r}"
        raise GenerationConfigError(msg) from exc
    if seconds <= 0:
        msg = f"{env_var} must be positive, got: {seconds}"
        raise GenerationConfigError(msg)
    return dt.timedelta(seconds=seconds)


@dc.dataclass(frozen=True, slots=True)
class GenerationConfig:
    """Settings for dispatch, builders and stale-job recovery.

    Attributes
    ----------
    wrapped_enabled
        Master switch for generation requests. Status reads keep working
        when it is off.
    launch_backend
        ``inprocess`` runs generators as tracked asyncio tasks in the API
        process; ``dramatiq`` sends them to workers.
    builder_backend
        Builder used to produce report content.
    statistics_url
        Base URL of the statistics service. Required for the
        ``statistics`` builder.
    statistics_token
        Optional bearer token for the statistics service.
    stale_after
        Age after which a ``generating`` attempt is failed by the sweep.
        ``None`` disables the sweep.
    mock_delay_seconds
        Artificial delay applied by the mock builder.

    """

    wrapped_enabled: bool = True
    launch_backend: LaunchBackend = LaunchBackend.INPROCESS
    builder_backend: BuilderBackend = BuilderBackend.MOCK
    statistics_url: str | None = None
    statistics_token: str | None = None
    stale_after: dt.timedelta | None = None
    mock_delay_seconds: float = 0.0

    @classmethod
    def from_env(cls) -> GenerationConfig:
        """Create configuration from ``PLEXWRAP_*`` environment variables.

        Reads ``PLEXWRAP_WRAPPED_ENABLED``, ``PLEXWRAP_GENERATION_BACKEND``,
        ``PLEXWRAP_WRAPPED_BUILDER``, ``PLEXWRAP_STATISTICS_URL``,
        ``PLEXWRAP_STATISTICS_TOKEN``, ``PLEXWRAP_STALE_JOB_TIMEOUT_SECONDS``
        and ``PLEXWRAP_MOCK_BUILDER_DELAY_SECONDS``.

        Raises
        ------
        GenerationConfigError
            If any value is malformed, or the statistics builder is selected
            without ``PLEXWRAP_STATISTICS_URL``.

        """
        builder_backend = _parse_choice(
            "PLEXWRAP_WRAPPED_BUILDER", BuilderBackend, BuilderBackend.MOCK
        )
        statistics_url = os.environ.get("PLEXWRAP_STATISTICS_URL", "").strip() or None
        if builder_backend is BuilderBackend.STATISTICS and statistics_url is None:
            raise GenerationConfigError.missing(
                "PLEXWRAP_STATISTICS_URL", "when PLEXWRAP_WRAPPED_BUILDER=statistics"
            )

        delay = _parse_optional_seconds("PLEXWRAP_MOCK_BUILDER_DELAY_SECONDS")
        return cls(
            wrapped_enabled=parse_bool_env("PLEXWRAP_WRAPPED_ENABLED", default=True),
            launch_backend=_parse_choice(
                "PLEXWRAP_GENERATION_BACKEND", LaunchBackend, LaunchBackend.INPROCESS
            ),
            builder_backend=builder_backend,
            statistics_url=statistics_url,
            statistics_token=os.environ.get("PLEXWRAP_STATISTICS_TOKEN") or None,
            stale_after=_parse_optional_seconds("PLEXWRAP_STALE_JOB_TIMEOUT_SECONDS"),
            mock_delay_seconds=0.0 if delay is None else delay.total_seconds(),
        )
