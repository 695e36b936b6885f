"""Polling Client: follow one Wrapped job until it finishes.

``StatusPoller`` is a three-state machine (``idle``, ``polling``, ``done``)
driven by a ``Ticker``. While polling it queries the status once per
interval. A ``completed`` status ends the loop and hands the result to
``on_completed``; a ``failed`` status ends it and hands the message to
``on_failed``. Anything else, including a ``TransientPollError``, waits for
the next tick.

``PollingController`` owns at most one running poller and replaces it when
the watched subject or period changes, so a superseded loop never fires
again.

Usage
-----
>>> poller = StatusPoller(fetcher, callbacks=PollCallbacks(on_completed=show))
>>> outcome = await poller.run("subject-1", 2024)
>>> outcome.kind
<PollOutcomeKind.COMPLETED: 'completed'>

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import enum
import inspect
import typing as typ

import msgspec

from plexwrap.generation.errors import DEFAULT_FAILURE_MESSAGE
from plexwrap.jobs.models import CompletedJob, FailedJob, JobStatus
from plexwrap.logging import get_logger, log_info, log_warning
from plexwrap.polling.config import PollingConfig
from plexwrap.polling.errors import TransientPollError
from plexwrap.polling.ticker import AsyncioTicker, CancellationToken

if typ.TYPE_CHECKING:
    from plexwrap.jobs.models import JobView
    from plexwrap.polling.ticker import Ticker

logger = get_logger(__name__)

TIMED_OUT_MESSAGE = "Timed out waiting for wrapped generation"

type ResultCallback = typ.Callable[[dict[str, typ.Any]], object]
type MessageCallback = typ.Callable[[str], object]


class PollState(enum.StrEnum):
    """States of ``StatusPoller``."""

    IDLE = "idle"
    POLLING = "polling"
    DONE = "done"


class PollOutcomeKind(enum.StrEnum):
    """How a call to ``StatusPoller.run`` ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    NOT_IN_FLIGHT = "not_in_flight"


class PollOutcome(msgspec.Struct, kw_only=True, frozen=True):
    """Result of one poll run.

    Attributes
    ----------
    kind
        Why the run ended.
    queries
        Number of status queries issued, including failed ones.
    result
        The report, for ``completed`` outcomes.
    error
        The user-safe message, for ``failed`` and ``timed_out`` outcomes.

    """

    kind: PollOutcomeKind
    queries: int
    result: dict[str, typ.Any] | None = None
    error: str | None = None


@typ.runtime_checkable
class StatusFetcher(typ.Protocol):
    """Issue one status query."""

    async def fetch(self, subject_id: str, period: int) -> JobView | None:
        """Return the latest attempt, or ``None`` if none has been dispatched.

        Raise ``TransientPollError`` for failures worth retrying on the next
        tick; any other exception stops the poller.
        """
        ...


@dc.dataclass(frozen=True, slots=True)
class PollCallbacks:
    """Consumer hooks. Each may be a plain function or a coroutine function."""

    on_completed: ResultCallback | None = None
    on_failed: MessageCallback | None = None
    on_timed_out: MessageCallback | None = None


async def _invoke[T](callback: typ.Callable[[T], object] | None, value: T) -> None:
    if callback is None:
        return
    returned = callback(value)
    if inspect.isawaitable(returned):
        await returned


class StatusPoller:
    """Poll the status of one key until it is terminal, cancelled or timed out.

    Parameters
    ----------
    fetcher
        Issues the status queries.
    config
        Interval and maximum duration; defaults to 2 s and 600 s.
    ticker
        Scheduler for the interval waits; defaults to the asyncio loop.
    callbacks
        Consumer hooks for terminal outcomes.

    """

    def __init__(
        self,
        fetcher: StatusFetcher,
        *,
        config: PollingConfig | None = None,
        ticker: Ticker | None = None,
        callbacks: PollCallbacks | None = None,
    ) -> None:
        """Configure the poller; it starts in ``idle``."""
        self._fetcher = fetcher
        self._config = config or PollingConfig()
        self._ticker = ticker or AsyncioTicker()
        self._callbacks = callbacks or PollCallbacks()
        self._state = PollState.IDLE
        self._queries = 0

    @property
    def state(self) -> PollState:
        """Return the current state."""
        return self._state

    @property
    def queries(self) -> int:
        """Return the number of queries issued by the current or last run."""
        return self._queries

    async def run(
        self,
        subject_id: str,
        period: int,
        *,
        cancel: CancellationToken | None = None,
        in_flight: bool = True,
    ) -> PollOutcome:
        """Follow the job for ``(subject_id, period)``.

        Parameters
        ----------
        subject_id, period
            Key of the job to follow.
        cancel
            Token that stops the loop at the next wait or query boundary.
        in_flight
            ``True`` when the caller knows a generation is running, so the
            poller enters ``polling`` immediately. ``False`` makes the poller
            check once and only start polling if it sees ``generating``.

        Raises
        ------
        RuntimeError
            If this poller is already running.

        """
        if self._state is PollState.POLLING:
            msg = "StatusPoller is already polling"
            raise RuntimeError(msg)

        token = cancel or CancellationToken()
        self._state = PollState.IDLE
        self._queries = 0
        try:
            if not in_flight:
                view = await self._query(subject_id, period)
                if view is None or view.status is not JobStatus.GENERATING:
                    return PollOutcome(
                        kind=PollOutcomeKind.NOT_IN_FLIGHT, queries=self._queries
                    )
            self._state = PollState.POLLING
            return await self._loop(subject_id, period, token)
        finally:
            if self._state is PollState.POLLING:
                self._state = PollState.IDLE

    async def _loop(
        self, subject_id: str, period: int, token: CancellationToken
    ) -> PollOutcome:
        max_duration = self._config.max_duration_seconds
        deadline = (
            None if max_duration is None else self._ticker.monotonic() + max_duration
        )
        while True:
            if deadline is not None and self._ticker.monotonic() >= deadline:
                return await self._time_out(subject_id, period)
            if not await self._ticker.wait(self._config.interval_seconds, token):
                return self._cancelled()
            view = await self._query(subject_id, period)
            if token.cancelled:
                return self._cancelled()
            if isinstance(view, CompletedJob):
                self._state = PollState.DONE
                await _invoke(self._callbacks.on_completed, view.result)
                return PollOutcome(
                    kind=PollOutcomeKind.COMPLETED,
                    queries=self._queries,
                    result=view.result,
                )
            if isinstance(view, FailedJob):
                self._state = PollState.DONE
                message = view.error or DEFAULT_FAILURE_MESSAGE
                await _invoke(self._callbacks.on_failed, message)
                return PollOutcome(
                    kind=PollOutcomeKind.FAILED,
                    queries=self._queries,
                    error=message,
                )

    async def _query(self, subject_id: str, period: int) -> JobView | None:
        self._queries += 1
        try:
            return await self._fetcher.fetch(subject_id, period)
        except TransientPollError as exc:
            log_warning(
                logger,
                "Error polling wrapped status for %s/%s: %s",
                subject_id,
                period,
                exc,
            )
            return None

    def _cancelled(self) -> PollOutcome:
        self._state = PollState.IDLE
        return PollOutcome(kind=PollOutcomeKind.CANCELLED, queries=self._queries)

    async def _time_out(self, subject_id: str, period: int) -> PollOutcome:
        self._state = PollState.DONE
        log_warning(
            logger,
            "Gave up polling %s/%s after %d queries",
            subject_id,
            period,
            self._queries,
        )
        await _invoke(self._callbacks.on_timed_out, TIMED_OUT_MESSAGE)
        return PollOutcome(
            kind=PollOutcomeKind.TIMED_OUT,
            queries=self._queries,
            error=TIMED_OUT_MESSAGE,
        )


class PollingController:
    """Keep at most one poll loop alive for a consumer.

    ``watch`` cancels whatever loop is running before starting a new one,
    and ``close`` cancels the current loop; both wait for the old loop to
    exit.

    Examples
    --------
    >>> controller = PollingController(lambda: StatusPoller(fetcher))
    >>> task = await controller.watch("subject-1", 2024)
    >>> await controller.watch("subject-2", 2024)  # subject-1 loop stops
    >>> await controller.close()

    """

    def __init__(
        self,
        poller_factory: typ.Callable[[], StatusPoller],
        *,
        stop_grace_seconds: float = 5.0,
    ) -> None:
        """Store the factory used to build a poller per watch."""
        self._poller_factory = poller_factory
        self._stop_grace_seconds = stop_grace_seconds
        self._key: tuple[str, int] | None = None
        self._token: CancellationToken | None = None
        self._task: asyncio.Task[PollOutcome] | None = None

    @property
    def watching(self) -> tuple[str, int] | None:
        """Return the key of the running loop, if any."""
        if self._task is None or self._task.done():
            return None
        return self._key

    async def watch(
        self,
        subject_id: str,
        period: int,
        *,
        in_flight: bool = True,
    ) -> asyncio.Task[PollOutcome]:
        """Stop the current loop and start following ``(subject_id, period)``."""
        await self.close()
        poller = self._poller_factory()
        token = CancellationToken()
        self._key = (subject_id, period)
        self._token = token
        self._task = asyncio.create_task(
            poller.run(subject_id, period, cancel=token, in_flight=in_flight),
            name=f"wrapped-poll-{subject_id}-{period}",
        )
        log_info(logger, "Watching wrapped status for %s/%s", subject_id, period)
        return self._task

    async def close(self) -> None:
        """Cancel the current loop and wait for it to exit."""
        task, token = self._task, self._token
        self._task = None
        self._token = None
        self._key = None
        if task is None or token is None:
            return
        token.cancel()
        _done, pending = await asyncio.wait({task}, timeout=self._stop_grace_seconds)
        if pending:
            # A fetch is hanging; cancel the task outright.
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def __aenter__(self) -> typ.Self:
        """Return the controller."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Stop any running loop."""
        await self.close()
