"""HTTP statistics source backed by a JSON endpoint."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from plexwrap.generation.errors import StatisticsSourceError
from plexwrap.generation.models import ViewingStatistics

_HTTP_ERROR_STATUS_THRESHOLD = 400
_DEFAULT_TIMEOUT_S = 30.0


class HttpStatisticsSource:
    """Fetch statistics from ``GET {base_url}/accounts/{id}/statistics``.

    The endpoint receives the period as the ``year`` query parameter and
    must answer with a JSON object matching ``ViewingStatistics``.

    Parameters
    ----------
    base_url
        Root URL of the statistics service.
    api_token
        Optional bearer token sent with every request.
    http_client
        Optional client, for tests. When omitted the source creates and owns
        one, and ``aclose`` closes it.

    """

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str | None = None,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Create or adopt the HTTP client."""
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
            headers=headers,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this source created it."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, media_account_id: str, period: int) -> ViewingStatistics:
        """Return the statistics for *media_account_id* in *period*.

        Raises
        ------
        StatisticsSourceError
            On transport failures, error responses or malformed bodies.

        """
        try:
            response = await self._client.get(
                f"/accounts/{media_account_id}/statistics",
                params={"year": period},
            )
        except httpx.RequestError as exc:
            msg = f"Statistics request failed: {exc}"
            raise StatisticsSourceError(msg) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            msg = f"Statistics service returned HTTP {response.status_code}"
            raise StatisticsSourceError(msg)

        try:
            return msgspec.json.decode(response.content, type=ViewingStatistics)
        except msgspec.DecodeError as exc:
            msg = f"Statistics payload is invalid: {exc}"
            raise StatisticsSourceError(msg) from exc

    async def __aenter__(self) -> typ.Self:
        """Return the source for use as an async context manager."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close owned resources."""
        await self.aclose()
