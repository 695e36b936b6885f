"""Caller-facing operations over Wrapped jobs.

``WrappedService`` is what the HTTP layer and the CLI call. It applies the
feature switch, subject existence and access policy, then delegates to the
dispatcher or the status query service. The caller identity is always an
explicit argument.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import msgspec

from plexwrap.jobs.errors import (
    DispatchFailedError,
    GenerationDisabledError,
    SubjectNotFoundError,
)
from plexwrap.jobs.models import DispatchOutcome, DispatchResult
from plexwrap.jobs.policy import (
    authorize_generation,
    authorize_status_read,
    require_admin,
)

if typ.TYPE_CHECKING:
    from plexwrap.accounts.directory import SubjectDirectory
    from plexwrap.accounts.models import CallerSession
    from plexwrap.jobs.dispatcher import JobDispatcher
    from plexwrap.jobs.models import JobView
    from plexwrap.jobs.query import StatusQueryService
    from plexwrap.jobs.store import JobStore

__all__ = ["BulkDispatchSummary", "WrappedService", "WrappedServiceDependencies"]


class BulkDispatchSummary(msgspec.Struct, kw_only=True, frozen=True):
    """Counters returned by ``request_generation_for_all``.

    Attributes
    ----------
    accepted
        Subjects for which a new attempt started.
    already_in_flight
        Subjects that already had a running attempt.
    failed
        Subjects whose dispatch raised ``DispatchFailedError``.
    errors
        One ``"<subject_id>: <message>"`` entry per failure, using the
        user-safe message.

    """

    accepted: int = 0
    already_in_flight: int = 0
    failed: int = 0
    errors: tuple[str, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class WrappedServiceDependencies:
    """Collaborators for ``WrappedService``."""

    store: JobStore
    dispatcher: JobDispatcher
    query: StatusQueryService
    directory: SubjectDirectory


class WrappedService:
    """Apply access rules around dispatch and status reads."""

    def __init__(
        self,
        dependencies: WrappedServiceDependencies,
        *,
        generation_enabled: bool = True,
    ) -> None:
        """Configure the service.

        Parameters
        ----------
        dependencies
            Store, dispatcher, query service and subject directory.
        generation_enabled
            When ``False`` every generation request raises
            ``GenerationDisabledError`` before touching the store. Status
            reads are unaffected.

        """
        self._store = dependencies.store
        self._dispatcher = dependencies.dispatcher
        self._query = dependencies.query
        self._directory = dependencies.directory
        self._generation_enabled = generation_enabled

    @property
    def generation_enabled(self) -> bool:
        """Return whether generation requests are accepted."""
        return self._generation_enabled

    async def request_generation(
        self,
        caller: CallerSession,
        subject_id: str,
        period: int,
    ) -> DispatchResult:
        """Dispatch generation for *subject_id* on behalf of *caller*.

        Raises
        ------
        GenerationDisabledError
            If generation is switched off.
        SubjectNotFoundError
            If the subject does not exist.
        AccessDeniedError
            If the generation policy refuses the caller.
        DispatchFailedError
            If the attempt could not be started.

        """
        if not self._generation_enabled:
            raise GenerationDisabledError
        if await self._directory.get(subject_id) is None:
            raise SubjectNotFoundError(subject_id)
        latest = await self._store.latest(subject_id, period)
        latest_status = None if latest is None else latest.status
        authorize_generation(caller, subject_id, latest_status)
        return await self._dispatcher.dispatch(subject_id, period)

    async def read_status(
        self,
        caller: CallerSession,
        subject_id: str,
        period: int,
    ) -> JobView:
        """Return the latest attempt for the key if *caller* may see it."""
        authorize_status_read(caller, subject_id)
        return await self._query.query(subject_id, period)

    async def request_generation_for_all(
        self,
        caller: CallerSession,
        period: int,
    ) -> BulkDispatchSummary:
        """Dispatch generation for every subject with a linked media account.

        Failures for individual subjects are counted and do not stop the
        remaining dispatches.
        """
        require_admin(caller)
        if not self._generation_enabled:
            raise GenerationDisabledError

        counts = dict.fromkeys(DispatchOutcome, 0)
        errors: list[str] = []
        for subject in await self._directory.list_with_media_accounts():
            try:
                result = await self._dispatcher.dispatch(subject.subject_id, period)
            except DispatchFailedError as exc:
                errors.append(f"{subject.subject_id}: {exc.public_message}")
                continue
            counts[result.outcome] += 1

        return BulkDispatchSummary(
            accepted=counts[DispatchOutcome.ACCEPTED],
            already_in_flight=counts[DispatchOutcome.ALREADY_IN_FLIGHT],
            failed=len(errors),
            errors=tuple(errors),
        )
