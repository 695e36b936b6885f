"""Select a ``WrappedBuilder`` implementation from configuration."""

from __future__ import annotations

import contextlib
import typing as typ

from plexwrap.generation.config import BuilderBackend, GenerationConfig
from plexwrap.generation.mock import MockWrappedBuilder

if typ.TYPE_CHECKING:
    from plexwrap.generation.protocol import WrappedBuilder
    from plexwrap.generation.sources import HttpStatisticsSource


def _statistics_source(settings: GenerationConfig) -> HttpStatisticsSource:
    from plexwrap.generation.sources import HttpStatisticsSource

    return HttpStatisticsSource(
        typ.cast("str", settings.statistics_url),
        api_token=settings.statistics_token,
    )


def _statistics_builder(source: HttpStatisticsSource) -> WrappedBuilder:
    from plexwrap.generation.pipeline import StatisticsWrappedBuilder, TemplateNarrator

    return StatisticsWrappedBuilder(source, TemplateNarrator())


def create_wrapped_builder(config: GenerationConfig | None = None) -> WrappedBuilder:
    """Create the builder named by ``config.builder_backend``.

    The statistics builder's HTTP client is bound to the event loop that
    first uses it, so this suits long-lived callers running on one loop.
    Callers that start a loop per job use ``open_wrapped_builder``.

    Parameters
    ----------
    config
        Generation settings; read from the environment when omitted.

    Returns
    -------
    WrappedBuilder
        ``MockWrappedBuilder`` or a ``StatisticsWrappedBuilder`` wired to the
        HTTP statistics source and the template narrator.

    Examples
    --------
    >>> builder = create_wrapped_builder(GenerationConfig())
    >>> isinstance(builder, MockWrappedBuilder)
    True

    """
    settings = config or GenerationConfig.from_env()
    if settings.builder_backend is BuilderBackend.MOCK:
        return MockWrappedBuilder(delay_seconds=settings.mock_delay_seconds)
    return _statistics_builder(_statistics_source(settings))


@contextlib.asynccontextmanager
async def open_wrapped_builder(
    config: GenerationConfig | None = None,
) -> typ.AsyncIterator[WrappedBuilder]:
    """Yield a builder whose HTTP resources are closed on exit.

    Examples
    --------
    >>> async with open_wrapped_builder() as builder:
    ...     result = await builder.build(subject, 2024)

    """
    settings = config or GenerationConfig.from_env()
    if settings.builder_backend is BuilderBackend.MOCK:
        yield MockWrappedBuilder(delay_seconds=settings.mock_delay_seconds)
        return
    async with _statistics_source(settings) as source:
        yield _statistics_builder(source)
