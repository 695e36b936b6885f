"""Builder and statistics protocols for Wrapped generation."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from plexwrap.accounts.models import SubjectProfile
    from plexwrap.generation.models import (
        ViewingStatistics,
        WrappedResult,
        WrappedSection,
    )


@typ.runtime_checkable
class WrappedBuilder(typ.Protocol):
    """Produce the Wrapped report for one subject and period.

    Raise ``WrappedGenerationError`` for failures whose message should reach
    the subject; anything else is reported with a generic message.
    """

    async def build(self, subject: SubjectProfile, period: int) -> WrappedResult:
        """Build and return the report."""
        ...


@typ.runtime_checkable
class StatisticsSource(typ.Protocol):
    """Provide viewing statistics for a media account."""

    async def fetch(self, media_account_id: str, period: int) -> ViewingStatistics:
        """Return the statistics for *media_account_id* in *period*."""
        ...


@typ.runtime_checkable
class WrappedNarrator(typ.Protocol):
    """Turn statistics into the headline and sections of a report."""

    async def narrate(
        self,
        subject: SubjectProfile,
        period: int,
        statistics: ViewingStatistics,
    ) -> tuple[str, tuple[WrappedSection, ...]]:
        """Return ``(headline, sections)`` for the report."""
        ...
