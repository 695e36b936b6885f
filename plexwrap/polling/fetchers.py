"""Status fetchers for in-process and remote polling."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from plexwrap.jobs.errors import JobNotFoundError, JobStoreError
from plexwrap.jobs.models import decode_job_view
from plexwrap.polling.errors import PollingAccessError, TransientPollError

if typ.TYPE_CHECKING:
    from plexwrap.jobs.models import JobView
    from plexwrap.jobs.query import StatusQueryService

_HTTP_CLIENT_ERROR = 400
_HTTP_NOT_FOUND = 404
_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_RATE_LIMITED = 429
_HTTP_SERVER_ERROR = 500
_DEFAULT_TIMEOUT_S = 10.0


class ServiceStatusFetcher:
    """Query a ``StatusQueryService`` in the same process."""

    def __init__(self, query: StatusQueryService) -> None:
        """Store the query service."""
        self._query = query

    async def fetch(self, subject_id: str, period: int) -> JobView | None:
        """Return the latest attempt, mapping store faults to transient errors."""
        try:
            return await self._query.query(subject_id, period)
        except JobNotFoundError:
            return None
        except JobStoreError as exc:
            raise TransientPollError(str(exc)) from exc


class HttpStatusFetcher:
    """Query the status endpoint of a running Plexwrap API.

    Parameters
    ----------
    base_url
        Root URL of the API, for example ``http://localhost:8080``.
    session_token
        Bearer token of the caller.
    admin
        Use the ``/admin`` status route instead of the self-service one.
    http_client
        Optional client, for tests. When omitted the fetcher creates and
        owns one.

    """

    def __init__(
        self,
        base_url: str,
        session_token: str,
        *,
        admin: bool = False,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Create or adopt the HTTP client."""
        self._prefix = "/admin/wrapped" if admin else "/wrapped"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
        )
        self._headers = {"Authorization": f"Bearer {session_token}"}

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, subject_id: str, period: int) -> JobView | None:
        """Issue one ``GET .../status`` request.

        Raises
        ------
        TransientPollError
            On transport errors, rate limiting, server errors or an
            undecodable body.
        PollingAccessError
            When the API rejects the session (401) or the caller (403).

        """
        try:
            response = await self._client.get(
                f"{self._prefix}/{subject_id}/{period}/status",
                headers=self._headers,
            )
        except httpx.RequestError as exc:
            raise TransientPollError(str(exc)) from exc

        status_code = response.status_code
        if status_code == _HTTP_NOT_FOUND:
            return None
        if status_code in {_HTTP_UNAUTHORIZED, _HTTP_FORBIDDEN}:
            raise PollingAccessError(status_code, _envelope_message(response))
        if status_code == _HTTP_RATE_LIMITED or status_code >= _HTTP_SERVER_ERROR:
            msg = f"HTTP {status_code}: {_envelope_message(response)}"
            raise TransientPollError(msg)
        if status_code >= _HTTP_CLIENT_ERROR:
            raise PollingAccessError(status_code, _envelope_message(response))

        try:
            return decode_job_view(response.content)
        except msgspec.DecodeError as exc:
            msg = f"Malformed status payload: {exc}"
            raise TransientPollError(msg) from exc


class _Envelope(msgspec.Struct):
    code: str = ""
    message: str = ""


def _envelope_message(response: httpx.Response) -> str:
    try:
        return msgspec.json.decode(response.content, type=_Envelope).message
    except msgspec.DecodeError:
        return response.reason_phrase
