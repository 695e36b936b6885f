"""Parsing of path parameters."""

from __future__ import annotations

import math

from plexwrap.api.errors import ApiError

MIN_PERIOD = 2000
MAX_PERIOD = 2100


def parse_period(raw: str) -> int:
    """Parse a reporting year from a path segment.

    Leading zeros are accepted and a fractional value is truncated, so
    ``"02024"`` and ``"2024.5"`` both yield ``2024``.

    Raises
    ------
    ApiError
        ``VALIDATION_ERROR`` if *raw* is not a finite number or the year is
        outside ``MIN_PERIOD``..``MAX_PERIOD``.

    """
    try:
        value = float(raw.strip())
    except ValueError as exc:
        msg = f"Invalid year: {raw!r}"
        raise ApiError.validation(msg) from exc
    if not math.isfinite(value):
        msg = f"Invalid year: {raw!r}"
        raise ApiError.validation(msg)
    year = int(value)
    if not (MIN_PERIOD <= year <= MAX_PERIOD):
        msg = f"Year must be between {MIN_PERIOD} and {MAX_PERIOD}"
        raise ApiError.validation(msg)
    return year
