"""Deterministic builder for development, demos and tests."""

from __future__ import annotations

import asyncio
import hashlib
import typing as typ

from plexwrap.generation.errors import WrappedGenerationError
from plexwrap.generation.models import (
    ViewingStatistics,
    WrappedMetadata,
    WrappedResult,
    WrappedSection,
)

if typ.TYPE_CHECKING:
    from plexwrap.accounts.models import SubjectProfile

_GENRES = ("Drama", "Comedy", "Documentary", "Sci-Fi", "Thriller", "Animation")
_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def _seed(subject_id: str, period: int) -> int:
    digest = hashlib.sha256(f"{subject_id}:{period}".encode()).digest()
    return int.from_bytes(digest[:8], "big")


def mock_statistics(subject_id: str, period: int) -> ViewingStatistics:
    """Derive stable, plausible statistics from the subject and period."""
    seed = _seed(subject_id, period)
    return ViewingStatistics(
        total_watch_minutes=600 + seed % 40_000,
        titles_watched=5 + seed % 300,
        top_titles=tuple(f"Title {(seed >> shift) % 997}" for shift in (3, 11, 19)),
        top_genres=(_GENRES[seed % len(_GENRES)], _GENRES[(seed >> 7) % len(_GENRES)]),
        busiest_month=_MONTHS[seed % len(_MONTHS)],
    )


class MockWrappedBuilder:
    """Build a Wrapped report without calling any external service.

    Output depends only on the subject and period, so repeated runs produce
    identical content. The linked media account requirement is enforced the
    same way as the real pipeline.

    Parameters
    ----------
    delay_seconds
        Optional pause before returning, useful for watching a job move
        through ``generating`` by hand.

    """

    name = "mock"

    def __init__(self, *, delay_seconds: float = 0.0) -> None:
        """Store the artificial delay."""
        self._delay_seconds = delay_seconds

    async def build(self, subject: SubjectProfile, period: int) -> WrappedResult:
        """Return a deterministic report for *subject* in *period*."""
        if subject.media_account_id is None:
            raise WrappedGenerationError.missing_media_account()
        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)

        stats = mock_statistics(subject.subject_id, period)
        hours = stats.total_watch_minutes // 60
        return WrappedResult(
            subject_id=subject.subject_id,
            period=period,
            headline=f"{subject.name}'s {period} in review",
            sections=(
                WrappedSection(
                    kind="overview",
                    title="Your year in numbers",
                    body=(
                        f"You watched {stats.titles_watched} titles "
                        f"over {hours} hours."
                    ),
                ),
                WrappedSection(
                    kind="favourites",
                    title="On repeat",
                    body=f"{stats.busiest_month} was your busiest month.",
                    highlights=stats.top_titles,
                ),
            ),
            metadata=WrappedMetadata(
                builder=self.name,
                generation_time_seconds=0.0,
                statistics={
                    "total_watch_minutes": stats.total_watch_minutes,
                    "titles_watched": stats.titles_watched,
                },
            ),
        )
