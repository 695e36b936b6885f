"""HTTP resources for triggering and observing Wrapped generation.

Routes
------
``POST /wrapped/{subject_id}/{period}/generate``
    Self-service dispatch. ``202 {"accepted": true, "job_id": ...}`` or
    ``200 {"already_in_flight": true}``.
``GET /wrapped/{subject_id}/{period}/status``
    Self-service status: the job's public fields.
``POST /admin/wrapped/{subject_id}/{period}/generate`` and
``GET /admin/wrapped/{subject_id}/{period}/status``
    The same operations behind the admin policy.
``POST /admin/wrapped/{period}/generate-all``
    Dispatch for every subject with a linked media account.

Access is enforced by ``GatewayMiddleware`` from each resource's
``access_policy`` before a responder runs; responders receive the caller
from ``req.context.caller``.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

import msgspec

from plexwrap.api.gateway import AccessPolicy
from plexwrap.api.params import parse_period
from plexwrap.jobs.models import public_fields

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from plexwrap.accounts.models import CallerSession
    from plexwrap.jobs.models import DispatchResult
    from plexwrap.jobs.service import WrappedService

__all__ = [
    "BulkGenerateResource",
    "WrappedGenerateResource",
    "WrappedStatusResource",
]


def _caller(req: Request) -> CallerSession:
    return typ.cast("CallerSession", req.context.caller)


def _render_dispatch(resp: Response, result: DispatchResult) -> None:
    if result.was_accepted and result.ticket is not None:
        resp.status = HTTPStatus.ACCEPTED
        resp.media = {
            "accepted": True,
            "job_id": result.ticket.job_id,
            "attempt": result.ticket.attempt,
        }
        return
    resp.status = HTTPStatus.OK
    resp.media = {"already_in_flight": True}


class _WrappedResource:
    operation_tag: str

    def __init__(self, service: WrappedService, *, admin: bool = False) -> None:
        self._service = service
        self.access_policy = AccessPolicy.ADMIN if admin else AccessPolicy.AUTHENTICATED
        if admin:
            self.operation_tag = f"admin.{self.operation_tag}"


class WrappedGenerateResource(_WrappedResource):
    """Start generation for one subject and period."""

    operation_tag = "wrapped.generate"

    async def on_post(
        self,
        req: Request,
        resp: Response,
        *,
        subject_id: str,
        period: str,
    ) -> None:
        """Handle a dispatch request."""
        year = parse_period(period)
        result = await self._service.request_generation(_caller(req), subject_id, year)
        _render_dispatch(resp, result)


class WrappedStatusResource(_WrappedResource):
    """Report the latest attempt for one subject and period."""

    operation_tag = "wrapped.status"

    async def on_get(
        self,
        req: Request,
        resp: Response,
        *,
        subject_id: str,
        period: str,
    ) -> None:
        """Handle a status request."""
        year = parse_period(period)
        view = await self._service.read_status(_caller(req), subject_id, year)
        resp.media = public_fields(view)
        resp.status = HTTPStatus.OK


class BulkGenerateResource:
    """Start generation for every eligible subject (administrators only)."""

    operation_tag = "admin.wrapped.generate_all"
    access_policy = AccessPolicy.ADMIN

    def __init__(self, service: WrappedService) -> None:
        """Store the service."""
        self._service = service

    async def on_post(self, req: Request, resp: Response, *, period: str) -> None:
        """Handle a bulk dispatch request."""
        year = parse_period(period)
        summary = await self._service.request_generation_for_all(_caller(req), year)
        resp.media = msgspec.to_builtins(summary)
        resp.status = HTTPStatus.OK
