"""Job Dispatcher: start at most one generation per key and return at once.

Usage
-----
>>> dispatcher = JobDispatcher(store, launcher)
>>> result = await dispatcher.dispatch("subject-1", 2024)
>>> result.outcome
<DispatchOutcome.ACCEPTED: 'accepted'>

"""

from __future__ import annotations

import typing as typ

from plexwrap.jobs.errors import DispatchFailedError, JobStoreError
from plexwrap.jobs.models import DispatchResult
from plexwrap.jobs.observability import GenerationEventLogger
from plexwrap.logging import get_logger, log_exception

if typ.TYPE_CHECKING:
    from plexwrap.jobs.models import GenerationTicket
    from plexwrap.jobs.store import JobStore

logger = get_logger(__name__)


@typ.runtime_checkable
class GenerationLauncher(typ.Protocol):
    """Hand an accepted attempt to an independent execution path.

    ``launch`` must return once the work is scheduled, not once it is done.
    The launched generator is the only writer of the attempt's terminal
    state.
    """

    async def launch(self, ticket: GenerationTicket) -> None:
        """Schedule generation for *ticket*."""
        ...


class JobDispatcher:
    """Accept generation requests without blocking on the generation itself."""

    def __init__(
        self,
        store: JobStore,
        launcher: GenerationLauncher,
        *,
        event_logger: GenerationEventLogger | None = None,
    ) -> None:
        """Configure the dispatcher with its store and launcher."""
        self._store = store
        self._launcher = launcher
        self._events = event_logger or GenerationEventLogger()

    async def dispatch(self, subject_id: str, period: int) -> DispatchResult:
        """Start a new attempt for the key unless one is already running.

        Returns
        -------
        DispatchResult
            ``accepted`` with the new ticket, or ``already_in_flight``.

        Raises
        ------
        DispatchFailedError
            If the attempt could not be stored or launched. A stored attempt
            whose launch failed is removed again, so the previous attempt
            stays the visible one.

        """
        try:
            ticket = await self._store.begin_attempt(subject_id, period)
        except JobStoreError as exc:
            self._events.log_dispatch_failed(
                subject_id=subject_id, period=period, error=exc
            )
            raise DispatchFailedError(str(exc)) from exc

        if ticket is None:
            self._events.log_dispatch_already_in_flight(
                subject_id=subject_id, period=period
            )
            return DispatchResult.already_in_flight()

        try:
            await self._launcher.launch(ticket)
        except Exception as exc:
            self._events.log_dispatch_failed(
                subject_id=subject_id, period=period, error=exc
            )
            await self._rollback(ticket)
            raise DispatchFailedError(str(exc)) from exc

        self._events.log_dispatch_accepted(ticket)
        return DispatchResult.accepted(ticket)

    async def _rollback(self, ticket: GenerationTicket) -> None:
        try:
            await self._store.discard_attempt(ticket)
        except JobStoreError as exc:
            # The orphaned attempt stays generating until the stale sweep.
            log_exception(
                logger,
                f"Could not discard unlaunched job {ticket.job_id}",
                exc,
            )
