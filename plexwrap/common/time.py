"""Time helpers shared by storage, gateway and generation code."""

from __future__ import annotations

import datetime as dt
import typing as typ

type Clock = typ.Callable[[], dt.datetime]


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def require_aware(value: dt.datetime, *, field: str) -> dt.datetime:
    """Return *value* in UTC, rejecting naive datetimes."""
    if value.tzinfo is None:
        msg = f"{field} must be timezone aware, got naive datetime {value!r}"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)
