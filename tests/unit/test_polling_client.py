"""Unit tests for ``StatusPoller`` and ``PollingController``."""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

import msgspec
import pytest

from plexwrap.generation import DEFAULT_FAILURE_MESSAGE
from plexwrap.jobs import CompletedJob, FailedJob, GeneratingJob
from plexwrap.polling import (
    TIMED_OUT_MESSAGE,
    AsyncioTicker,
    CancellationToken,
    PollCallbacks,
    PollingConfig,
    PollingController,
    PollOutcomeKind,
    PollState,
    StatusPoller,
    TransientPollError,
)
from tests.helpers.femtologging_capture import WARNING_LEVELS, capture_femto_logs

if typ.TYPE_CHECKING:
    from plexwrap.jobs import JobView

T0 = dt.datetime(2024, 12, 1, 9, 0, tzinfo=dt.UTC)
KEY = ("sub-1", 2024)

GENERATING = GeneratingJob(
    job_id="job-1", subject_id="sub-1", period=2024, attempt=1, started_at=T0
)
COMPLETED = CompletedJob(
    job_id="job-1",
    subject_id="sub-1",
    period=2024,
    attempt=1,
    started_at=T0,
    finished_at=T0 + dt.timedelta(seconds=5),
    result={"headline": "Ada's 2024 Wrapped"},
)
FAILED = FailedJob(
    job_id="job-1",
    subject_id="sub-1",
    period=2024,
    attempt=1,
    started_at=T0,
    finished_at=T0 + dt.timedelta(seconds=5),
    error="User does not have a Plex user ID",
)

type Response = JobView | None | Exception


class _VirtualTicker:
    """Ticker that advances virtual time instantly."""

    def __init__(self) -> None:
        self.now = 0.0
        self.waits = 0

    def monotonic(self) -> float:
        return self.now

    async def wait(self, interval: float, cancel: CancellationToken) -> bool:
        if cancel.cancelled:
            return False
        self.waits += 1
        self.now += interval
        await asyncio.sleep(0)
        return not cancel.cancelled


class _ScriptedFetcher:
    """Return scripted responses, repeating the last one."""

    def __init__(self, *responses: Response) -> None:
        self._responses = list(responses)
        self.calls = 0

    async def fetch(self, subject_id: str, period: int) -> JobView | None:
        index = min(self.calls, len(self._responses) - 1)
        self.calls += 1
        response = self._responses[index]
        if isinstance(response, Exception):
            raise response
        return response


class _BlockingFetcher:
    """Fetcher that waits until released, then reports generating."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch(self, subject_id: str, period: int) -> JobView | None:
        self.entered.set()
        await self.release.wait()
        return GENERATING


def _poller(
    fetcher: object,
    *,
    ticker: _VirtualTicker | None = None,
    config: PollingConfig | None = None,
    callbacks: PollCallbacks | None = None,
) -> StatusPoller:
    return StatusPoller(
        fetcher,  # type: ignore[arg-type]
        config=config or PollingConfig(),
        ticker=ticker or _VirtualTicker(),
        callbacks=callbacks,
    )


class TestStatusPoller:
    """Terminal states, transient errors, timeouts and cancellation."""

    @pytest.mark.asyncio
    async def test_completes_after_third_query(self) -> None:
        """Two generating responses then completed yields three queries."""
        results: list[dict[str, typ.Any]] = []
        ticker = _VirtualTicker()
        poller = _poller(
            _ScriptedFetcher(GENERATING, GENERATING, COMPLETED),
            ticker=ticker,
            callbacks=PollCallbacks(on_completed=results.append),
        )

        outcome = await poller.run(*KEY)

        assert outcome.kind is PollOutcomeKind.COMPLETED
        assert outcome.queries == 3
        assert outcome.result == COMPLETED.result
        assert results == [COMPLETED.result]
        assert ticker.now == pytest.approx(6.0), "one interval before each query"
        assert poller.state is PollState.DONE

    @pytest.mark.asyncio
    async def test_failed_hands_message_to_callback(self) -> None:
        """A failed attempt stops the loop with its stored message."""
        messages: list[str] = []
        poller = _poller(
            _ScriptedFetcher(FAILED),
            callbacks=PollCallbacks(on_failed=messages.append),
        )

        outcome = await poller.run(*KEY)

        assert outcome.kind is PollOutcomeKind.FAILED
        assert outcome.error == "User does not have a Plex user ID"
        assert messages == ["User does not have a Plex user ID"]

    @pytest.mark.asyncio
    async def test_failed_after_generating(self) -> None:
        """A generating response then a failed one stops after two queries."""
        failed = FailedJob(
            job_id="job-1",
            subject_id="sub-1",
            period=2024,
            attempt=1,
            started_at=T0,
            finished_at=T0 + dt.timedelta(seconds=5),
            error="Failed to generate wrapped",
        )
        fetcher = _ScriptedFetcher(GENERATING, failed)
        messages: list[str] = []
        poller = _poller(fetcher, callbacks=PollCallbacks(on_failed=messages.append))

        outcome = await poller.run(*KEY)

        assert outcome.kind is PollOutcomeKind.FAILED
        assert outcome.queries == 2
        assert fetcher.calls == 2, "no query after the terminal response"
        assert outcome.error == "Failed to generate wrapped"
        assert messages == ["Failed to generate wrapped"]
        assert poller.state is PollState.DONE

    @pytest.mark.asyncio
    async def test_failed_without_message_uses_default(self) -> None:
        """An empty stored error is reported as the generic failure message."""
        blank = msgspec.structs.replace(FAILED, error="")
        fetcher = _ScriptedFetcher(GENERATING, blank)
        poller = _poller(fetcher)

        outcome = await poller.run(*KEY)

        assert outcome.kind is PollOutcomeKind.FAILED
        assert outcome.error == DEFAULT_FAILURE_MESSAGE
        assert fetcher.calls == 2

    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited(self) -> None:
        """Coroutine callbacks run to completion before ``run`` returns."""
        seen: list[dict[str, typ.Any]] = []

        async def on_completed(result: dict[str, typ.Any]) -> None:
            await asyncio.sleep(0)
            seen.append(result)

        poller = _poller(
            _ScriptedFetcher(COMPLETED),
            callbacks=PollCallbacks(on_completed=on_completed),
        )
        await poller.run(*KEY)

        assert seen == [COMPLETED.result]

    @pytest.mark.asyncio
    async def test_transient_errors_keep_polling(self) -> None:
        """A failed query is logged and the next tick tries again."""
        poller = _poller(
            _ScriptedFetcher(TransientPollError("HTTP 503: busy"), COMPLETED)
        )

        with capture_femto_logs("plexwrap.polling.client") as capture:
            outcome = await poller.run(*KEY)
            capture.wait_for_count(1)

        assert outcome.kind is PollOutcomeKind.COMPLETED
        assert outcome.queries == 2
        assert capture.records[0].level in WARNING_LEVELS
        assert "HTTP 503: busy" in capture.records[0].message

    @pytest.mark.asyncio
    async def test_not_found_mid_poll_keeps_polling(self) -> None:
        """A missing key while polling is treated like a pending result."""
        poller = _poller(_ScriptedFetcher(None, COMPLETED))
        outcome = await poller.run(*KEY)
        assert outcome.kind is PollOutcomeKind.COMPLETED
        assert outcome.queries == 2

    @pytest.mark.asyncio
    async def test_times_out(self) -> None:
        """A job that never finishes ends the loop after the maximum duration."""
        timeouts: list[str] = []
        poller = _poller(
            _ScriptedFetcher(GENERATING),
            config=PollingConfig(interval_seconds=2.0, max_duration_seconds=6.0),
            callbacks=PollCallbacks(on_timed_out=timeouts.append),
        )

        outcome = await poller.run(*KEY)

        assert outcome.kind is PollOutcomeKind.TIMED_OUT
        assert outcome.queries == 3
        assert outcome.error == TIMED_OUT_MESSAGE
        assert timeouts == [TIMED_OUT_MESSAGE]

    @pytest.mark.asyncio
    async def test_cancel_during_query_discards_response(self) -> None:
        """A response arriving after cancellation fires no callback."""
        token = CancellationToken()
        completed: list[dict[str, typ.Any]] = []

        class _CancellingFetcher:
            async def fetch(self, subject_id: str, period: int) -> JobView | None:
                token.cancel()
                return COMPLETED

        poller = _poller(
            _CancellingFetcher(),
            callbacks=PollCallbacks(on_completed=completed.append),
        )

        outcome = await poller.run(*KEY, cancel=token)

        assert outcome.kind is PollOutcomeKind.CANCELLED
        assert outcome.queries == 1
        assert completed == []
        assert poller.state is PollState.IDLE

    @pytest.mark.asyncio
    async def test_cancelled_before_first_tick(self) -> None:
        """An already cancelled token issues no queries."""
        token = CancellationToken()
        token.cancel()
        fetcher = _ScriptedFetcher(COMPLETED)

        outcome = await _poller(fetcher).run(*KEY, cancel=token)

        assert outcome.kind is PollOutcomeKind.CANCELLED
        assert fetcher.calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("first_view", [None, COMPLETED, FAILED])
    async def test_not_in_flight_on_first_check(
        self, first_view: JobView | None
    ) -> None:
        """Without a known generation, anything but generating stays idle."""
        poller = _poller(_ScriptedFetcher(first_view))

        outcome = await poller.run(*KEY, in_flight=False)

        assert outcome.kind is PollOutcomeKind.NOT_IN_FLIGHT
        assert outcome.queries == 1
        assert poller.state is PollState.IDLE

    @pytest.mark.asyncio
    async def test_first_check_seeing_generating_starts_polling(self) -> None:
        """A generating first check enters the polling loop."""
        poller = _poller(_ScriptedFetcher(GENERATING, COMPLETED))

        outcome = await poller.run(*KEY, in_flight=False)

        assert outcome.kind is PollOutcomeKind.COMPLETED
        assert outcome.queries == 2

    @pytest.mark.asyncio
    async def test_second_run_while_polling_is_rejected(self) -> None:
        """One poller cannot follow two loops at once."""
        fetcher = _BlockingFetcher()
        poller = _poller(fetcher)
        token = CancellationToken()
        task = asyncio.create_task(poller.run(*KEY, cancel=token))
        await fetcher.entered.wait()

        assert poller.state is PollState.POLLING
        with pytest.raises(RuntimeError, match="already polling"):
            await poller.run(*KEY)

        token.cancel()
        fetcher.release.set()
        outcome = await task
        assert outcome.kind is PollOutcomeKind.CANCELLED

    @pytest.mark.asyncio
    async def test_poller_can_be_reused(self) -> None:
        """A finished poller starts afresh on the next run."""
        poller = _poller(_ScriptedFetcher(COMPLETED))
        await poller.run(*KEY)
        outcome = await poller.run(*KEY)
        assert outcome.kind is PollOutcomeKind.COMPLETED
        assert outcome.queries == 1


class TestPollingController:
    """At most one loop runs; switching keys stops the old loop."""

    @pytest.mark.asyncio
    async def test_watch_replaces_previous_loop(self) -> None:
        """Watching a new key cancels the loop for the old one."""
        config = PollingConfig(max_duration_seconds=None)
        controller = PollingController(
            lambda: _poller(_ScriptedFetcher(GENERATING), config=config)
        )

        first = await controller.watch("sub-1", 2024)
        second = await controller.watch("sub-2", 2024)

        assert first.done()
        assert first.result().kind is PollOutcomeKind.CANCELLED
        assert controller.watching == ("sub-2", 2024)

        await controller.close()
        assert second.result().kind is PollOutcomeKind.CANCELLED
        assert controller.watching is None

    @pytest.mark.asyncio
    async def test_close_cancels_hanging_fetch(self) -> None:
        """A fetch that never returns is cancelled after the grace period."""
        fetcher = _BlockingFetcher()
        controller = PollingController(
            lambda: _poller(fetcher), stop_grace_seconds=0.01
        )
        task = await controller.watch(*KEY)
        await fetcher.entered.wait()

        await controller.close()

        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_context_manager_closes(self) -> None:
        """Leaving the context stops the running loop."""
        config = PollingConfig(max_duration_seconds=None)
        async with PollingController(
            lambda: _poller(_ScriptedFetcher(GENERATING), config=config)
        ) as controller:
            task = await controller.watch(*KEY)

        assert task.done()
        assert controller.watching is None


class TestAsyncioTicker:
    """The real ticker sleeps unless cancelled."""

    @pytest.mark.asyncio
    async def test_interval_elapses(self) -> None:
        """An uncancelled wait returns True."""
        assert await AsyncioTicker().wait(0.01, CancellationToken()) is True

    @pytest.mark.asyncio
    async def test_cancel_cuts_wait_short(self) -> None:
        """Cancelling during a long wait returns False promptly."""
        token = CancellationToken()
        waiter = asyncio.create_task(AsyncioTicker().wait(60.0, token))
        await asyncio.sleep(0)
        token.cancel()
        assert await asyncio.wait_for(waiter, timeout=1.0) is False

    @pytest.mark.asyncio
    async def test_already_cancelled(self) -> None:
        """A cancelled token returns without waiting."""
        token = CancellationToken()
        token.cancel()
        assert await AsyncioTicker().wait(60.0, token) is False
