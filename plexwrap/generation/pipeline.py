"""Statistics-driven builder: fetch figures, narrate them, time the run."""

from __future__ import annotations

import time
import typing as typ

import msgspec

from plexwrap.generation.errors import WrappedGenerationError
from plexwrap.generation.models import WrappedMetadata, WrappedResult, WrappedSection

if typ.TYPE_CHECKING:
    from plexwrap.accounts.models import SubjectProfile
    from plexwrap.generation.models import ViewingStatistics
    from plexwrap.generation.protocol import StatisticsSource, WrappedNarrator

_MINUTES_PER_HOUR = 60


class TemplateNarrator:
    """Render statistics into fixed-wording sections."""

    async def narrate(
        self,
        subject: SubjectProfile,
        period: int,
        statistics: ViewingStatistics,
    ) -> tuple[str, tuple[WrappedSection, ...]]:
        """Return a headline and sections describing *statistics*."""
        hours = statistics.total_watch_minutes // _MINUTES_PER_HOUR
        sections = [
            WrappedSection(
                kind="overview",
                title="Your year in numbers",
                body=(
                    f"{statistics.titles_watched} titles and {hours} hours "
                    f"of viewing in {period}."
                ),
            )
        ]
        if statistics.top_titles:
            sections.append(
                WrappedSection(
                    kind="top_titles",
                    title="Most watched",
                    body=f"Your number one was {statistics.top_titles[0]}.",
                    highlights=statistics.top_titles,
                )
            )
        if statistics.top_genres:
            sections.append(
                WrappedSection(
                    kind="genres",
                    title="Your genres",
                    body=", ".join(statistics.top_genres),
                    highlights=statistics.top_genres,
                )
            )
        if statistics.busiest_month:
            sections.append(
                WrappedSection(
                    kind="calendar",
                    title="Peak season",
                    body=f"{statistics.busiest_month} was your busiest month.",
                )
            )
        return (f"{subject.name}'s {period} Wrapped", tuple(sections))


class StatisticsWrappedBuilder:
    """Build reports from a statistics source and a narrator.

    The wall-clock time spent building is stored in
    ``metadata.generation_time_seconds``.

    Examples
    --------
    >>> builder = StatisticsWrappedBuilder(source, TemplateNarrator())
    >>> result = await builder.build(subject, 2024)

    """

    name = "statistics"

    def __init__(
        self,
        source: StatisticsSource,
        narrator: WrappedNarrator,
        *,
        timer: typ.Callable[[], float] = time.perf_counter,
    ) -> None:
        """Store collaborators and the timer used for generation time."""
        self._source = source
        self._narrator = narrator
        self._timer = timer

    async def build(self, subject: SubjectProfile, period: int) -> WrappedResult:
        """Build the report for *subject* in *period*.

        Raises
        ------
        WrappedGenerationError
            If the subject has no linked media account.

        """
        if subject.media_account_id is None:
            raise WrappedGenerationError.missing_media_account()

        started = self._timer()
        statistics = await self._source.fetch(subject.media_account_id, period)
        headline, sections = await self._narrator.narrate(subject, period, statistics)
        elapsed = self._timer() - started

        return WrappedResult(
            subject_id=subject.subject_id,
            period=period,
            headline=headline,
            sections=sections,
            metadata=WrappedMetadata(
                builder=self.name,
                generation_time_seconds=round(elapsed, 3),
                statistics=typ.cast(
                    "dict[str, typ.Any]", msgspec.to_builtins(statistics)
                ),
            ),
        )
