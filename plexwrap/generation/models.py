"""Wrapped report content produced by builders."""

from __future__ import annotations

import typing as typ

import msgspec


class WrappedSection(msgspec.Struct, kw_only=True, frozen=True):
    """One titled block of a Wrapped report."""

    kind: str
    title: str
    body: str
    highlights: tuple[str, ...] = ()


class WrappedMetadata(msgspec.Struct, kw_only=True, frozen=True):
    """Provenance recorded alongside generated content."""

    builder: str
    generation_time_seconds: float
    statistics: dict[str, typ.Any] = msgspec.field(default_factory=dict)


class WrappedResult(msgspec.Struct, kw_only=True, frozen=True):
    """A complete Wrapped report for one subject and period."""

    subject_id: str
    period: int
    headline: str
    sections: tuple[WrappedSection, ...]
    metadata: WrappedMetadata


class ViewingStatistics(msgspec.Struct, kw_only=True, frozen=True):
    """Aggregated viewing figures for one media account and year.

    How these figures are computed belongs to the statistics source; the
    builder only consumes them.
    """

    total_watch_minutes: int = 0
    titles_watched: int = 0
    top_titles: tuple[str, ...] = ()
    top_genres: tuple[str, ...] = ()
    busiest_month: str | None = None


def to_result_payload(result: WrappedResult) -> dict[str, typ.Any]:
    """Convert *result* to the JSON document stored on a completed job."""
    return typ.cast("dict[str, typ.Any]", msgspec.to_builtins(result))
