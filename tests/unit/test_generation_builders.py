"""Unit tests for Wrapped builders, the statistics source and the factory."""

from __future__ import annotations

import httpx
import msgspec
import pytest

from plexwrap.accounts.models import SubjectProfile
from plexwrap.generation import (
    BuilderBackend,
    GenerationConfig,
    MockWrappedBuilder,
    StatisticsSourceError,
    StatisticsWrappedBuilder,
    TemplateNarrator,
    ViewingStatistics,
    WrappedGenerationError,
    create_wrapped_builder,
    open_wrapped_builder,
)
from plexwrap.generation.mock import mock_statistics
from plexwrap.generation.sources import HttpStatisticsSource

LINKED = SubjectProfile(subject_id="sub-1", name="Ada", media_account_id="plex-7")
UNLINKED = SubjectProfile(subject_id="sub-2", name="Bo")

STATS = ViewingStatistics(
    total_watch_minutes=6000,
    titles_watched=120,
    top_titles=("Arrival", "Heat"),
    top_genres=("Sci-Fi",),
    busiest_month="March",
)


class _FixedSource:
    """Statistics source returning a fixed payload and recording calls."""

    def __init__(self, stats: ViewingStatistics) -> None:
        self.stats = stats
        self.calls: list[tuple[str, int]] = []

    async def fetch(self, media_account_id: str, period: int) -> ViewingStatistics:
        self.calls.append((media_account_id, period))
        return self.stats


class _TickingTimer:
    """Timer advancing by a fixed step per call."""

    def __init__(self, step: float) -> None:
        self._now = 0.0
        self._step = step

    def __call__(self) -> float:
        value = self._now
        self._now += self._step
        return value


class TestMockWrappedBuilder:
    """The mock builder is deterministic and enforces a linked account."""

    @pytest.mark.asyncio
    async def test_same_input_same_output(self) -> None:
        """Repeated builds for the same key are identical."""
        builder = MockWrappedBuilder()
        first = await builder.build(LINKED, 2024)
        second = await builder.build(LINKED, 2024)
        assert first == second
        assert first.metadata.builder == "mock"
        assert first.headline == "Ada's 2024 in review"

    @pytest.mark.asyncio
    async def test_missing_media_account(self) -> None:
        """Subjects without a linked account fail with a public message."""
        with pytest.raises(WrappedGenerationError) as excinfo:
            await MockWrappedBuilder().build(UNLINKED, 2024)
        assert excinfo.value.public_message == "User does not have a Plex user ID"

    def test_statistics_vary_by_period(self) -> None:
        """Different periods usually produce different figures."""
        assert mock_statistics("sub-1", 2023) != mock_statistics("sub-1", 2024)


class TestStatisticsWrappedBuilder:
    """The pipeline fetches, narrates and stamps generation time."""

    @pytest.mark.asyncio
    async def test_builds_from_source(self) -> None:
        """Statistics flow through the narrator into the result."""
        source = _FixedSource(STATS)
        builder = StatisticsWrappedBuilder(
            source, TemplateNarrator(), timer=_TickingTimer(1.25)
        )

        result = await builder.build(LINKED, 2024)

        assert source.calls == [("plex-7", 2024)]
        assert result.headline == "Ada's 2024 Wrapped"
        assert [section.kind for section in result.sections] == [
            "overview",
            "top_titles",
            "genres",
            "calendar",
        ]
        assert result.metadata.generation_time_seconds == 1.25
        assert result.metadata.statistics["titles_watched"] == 120

    @pytest.mark.asyncio
    async def test_sparse_statistics_skip_sections(self) -> None:
        """Only the overview is produced when nothing else is known."""
        builder = StatisticsWrappedBuilder(
            _FixedSource(ViewingStatistics()), TemplateNarrator()
        )
        result = await builder.build(LINKED, 2024)
        assert [section.kind for section in result.sections] == ["overview"]

    @pytest.mark.asyncio
    async def test_requires_media_account_before_fetching(self) -> None:
        """The source is never called for unlinked subjects."""
        source = _FixedSource(STATS)
        builder = StatisticsWrappedBuilder(source, TemplateNarrator())
        with pytest.raises(WrappedGenerationError):
            await builder.build(UNLINKED, 2024)
        assert source.calls == []


class TestHttpStatisticsSource:
    """The HTTP source decodes statistics and maps failures."""

    @pytest.mark.asyncio
    async def test_fetch_decodes_payload(self) -> None:
        """A 200 response decodes into ViewingStatistics."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=msgspec.json.encode(STATS))

        client = httpx.AsyncClient(
            base_url="http://stats.test", transport=httpx.MockTransport(handler)
        )
        async with HttpStatisticsSource("http://unused", http_client=client) as source:
            stats = await source.fetch("plex-7", 2024)
        await client.aclose()

        assert stats == STATS
        assert seen[0].url.path == "/accounts/plex-7/statistics"
        assert seen[0].url.params["year"] == "2024"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [httpx.Response(503), httpx.Response(200, content=b"not json")],
    )
    async def test_bad_responses_raise(self, response: httpx.Response) -> None:
        """Error statuses and malformed bodies raise StatisticsSourceError."""
        client = httpx.AsyncClient(
            base_url="http://stats.test",
            transport=httpx.MockTransport(lambda _request: response),
        )
        source = HttpStatisticsSource("http://unused", http_client=client)
        with pytest.raises(StatisticsSourceError):
            await source.fetch("plex-7", 2024)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_errors_raise(self) -> None:
        """Connection failures raise StatisticsSourceError."""

        def handler(request: httpx.Request) -> httpx.Response:
            msg = "refused"
            raise httpx.ConnectError(msg, request=request)

        client = httpx.AsyncClient(
            base_url="http://stats.test", transport=httpx.MockTransport(handler)
        )
        source = HttpStatisticsSource("http://unused", http_client=client)
        with pytest.raises(StatisticsSourceError, match="request failed"):
            await source.fetch("plex-7", 2024)
        await client.aclose()


class TestCreateWrappedBuilder:
    """The factory selects the builder named in configuration."""

    def test_mock_by_default(self) -> None:
        """The default configuration uses the mock builder."""
        builder = create_wrapped_builder(GenerationConfig())
        assert isinstance(builder, MockWrappedBuilder)

    def test_statistics_builder(self) -> None:
        """The statistics backend builds the HTTP pipeline."""
        builder = create_wrapped_builder(
            GenerationConfig(
                builder_backend=BuilderBackend.STATISTICS,
                statistics_url="http://stats.test",
            )
        )
        assert isinstance(builder, StatisticsWrappedBuilder)


class TestOpenWrappedBuilder:
    """The scoped factory closes what it opened on exit."""

    @pytest.mark.asyncio
    async def test_mock_backend(self) -> None:
        """The mock backend needs no cleanup."""
        async with open_wrapped_builder(GenerationConfig()) as builder:
            assert isinstance(builder, MockWrappedBuilder)

    @pytest.mark.asyncio
    async def test_statistics_client_closed_on_exit(self) -> None:
        """The statistics client is closed when the block exits."""
        config = GenerationConfig(
            builder_backend=BuilderBackend.STATISTICS,
            statistics_url="http://stats.test",
        )
        async with open_wrapped_builder(config) as builder:
            assert isinstance(builder, StatisticsWrappedBuilder)
            client = builder._source._client  # noqa: SLF001 - closed-state check
            assert not client.is_closed

        assert client.is_closed, "client should be closed after the block"
