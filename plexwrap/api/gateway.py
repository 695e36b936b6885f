"""Admin Gateway: rate limiting, then authentication, then authorization.

Every routed resource declares an ``access_policy`` and an
``operation_tag``. ``GatewayMiddleware`` runs before the responder and asks
``AdminGateway.admit`` to check, in this order:

1. the caller's fixed-window request budget (even for anonymous callers);
2. that a live session exists;
3. for ``AccessPolicy.ADMIN``, that the session belongs to an administrator.

Any failure raises ``ApiError`` and the responder never runs. On success the
``CallerSession`` is stored on ``req.context.caller`` for the responder to
pass explicitly into the service layer.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import math
import time
import typing as typ

import limits
import msgspec
from limits.aio import storage as limits_storage
from limits.aio import strategies as limits_strategies

from plexwrap.api.errors import ApiError
from plexwrap.logging import get_logger, log_operation_failure, log_warning

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from plexwrap.accounts.models import CallerSession
    from plexwrap.accounts.sessions import SessionResolver
    from plexwrap.api.config import GatewayConfig

__all__ = [
    "AccessPolicy",
    "AdminGateway",
    "FixedWindowRateLimiter",
    "GatewayMiddleware",
    "GatewayRequest",
    "RateLimitVerdict",
    "default_client_key",
]

logger = get_logger(__name__)

SESSION_COOKIE = "plexwrap_session"
_UNKNOWN = "unknown"
_BEARER_PREFIX = "bearer "


class AccessPolicy(enum.StrEnum):
    """Access level a resource requires."""

    AUTHENTICATED = "authenticated"
    ADMIN = "admin"


class RateLimitVerdict(msgspec.Struct, kw_only=True, frozen=True):
    """Decision for one request against a rate limiter.

    Attributes
    ----------
    allowed
        Whether the request fits in the current window.
    limit
        Requests permitted per window.
    remaining
        Requests left in the current window after this one.
    retry_after
        Whole seconds until the window resets; at least 1.
    reset_at
        Epoch second at which the window resets.

    """

    allowed: bool
    limit: int
    remaining: int
    retry_after: int
    reset_at: int


class FixedWindowRateLimiter:
    """Count requests per key in fixed windows backed by ``limits``.

    The first request for a key opens a window of ``window_seconds``. Up to
    ``max_requests`` requests are allowed inside it; later ones are refused
    until the window expires. Counters live in a ``limits`` in-memory
    storage, which expires finished windows itself.

    Parameters
    ----------
    max_requests
        Requests allowed per key per window.
    window_seconds
        Window length, rounded up to whole seconds.

    """

    def __init__(self, max_requests: int, window_seconds: float) -> None:
        """Validate the budget and create the backing storage."""
        if max_requests < 1 or window_seconds <= 0:
            msg = (
                "max_requests and window_seconds must be positive, got "
                f"{max_requests} and {window_seconds}"
            )
            raise ValueError(msg)
        self._item = limits.RateLimitItemPerSecond(
            max_requests, math.ceil(window_seconds)
        )
        self._storage = limits_storage.MemoryStorage()
        self._strategy = limits_strategies.FixedWindowRateLimiter(self._storage)

    @property
    def max_requests(self) -> int:
        """Return the per-window budget."""
        return self._item.amount

    @property
    def window_seconds(self) -> int:
        """Return the window length in seconds."""
        return self._item.get_expiry()

    async def hit(self, key: str) -> RateLimitVerdict:
        """Count one request for *key* and return the verdict."""
        allowed = await self._strategy.hit(self._item, key)
        stats = await self._strategy.get_window_stats(self._item, key)
        now = time.time()
        return RateLimitVerdict(
            allowed=allowed,
            limit=self._item.amount,
            remaining=max(0, stats.remaining),
            retry_after=max(1, math.ceil(stats.reset_time - now)),
            reset_at=math.ceil(stats.reset_time),
        )

    async def reset(self) -> None:
        """Forget every window."""
        await self._storage.reset()


@dc.dataclass(frozen=True, slots=True)
class GatewayRequest:
    """The parts of an HTTP request the gateway inspects.

    Attributes
    ----------
    client_address
        Best-effort client IP.
    user_agent
        ``User-Agent`` header, or ``None``.
    token
        Session token from a bearer ``Authorization`` header or the session
        cookie, or ``None``.

    """

    client_address: str
    user_agent: str | None = None
    token: str | None = None

    @classmethod
    def from_falcon(
        cls, req: Request, *, trust_forwarded_headers: bool = True
    ) -> GatewayRequest:
        """Extract a ``GatewayRequest`` from a Falcon request.

        With *trust_forwarded_headers* the address is the first entry of
        ``X-Forwarded-For``, else ``X-Real-IP``; otherwise, or when neither
        is present, the socket peer address.
        """
        address: str | None = None
        if trust_forwarded_headers:
            forwarded = req.get_header("X-Forwarded-For")
            if forwarded:
                address = forwarded.split(",")[0].strip() or None
            if address is None:
                address = (req.get_header("X-Real-IP") or "").strip() or None
        if address is None:
            address = req.remote_addr or _UNKNOWN
        return cls(
            client_address=address,
            user_agent=req.user_agent,
            token=_token_from(req),
        )


def _token_from(req: Request) -> str | None:
    authorization = req.get_header("Authorization") or ""
    if authorization.lower().startswith(_BEARER_PREFIX):
        token = authorization[len(_BEARER_PREFIX) :].strip()
        return token or None
    cookies = req.get_cookie_values(SESSION_COOKIE)
    if cookies:
        return cookies[0] or None
    return None


def default_client_key(request: GatewayRequest) -> str:
    """Identify a caller by client address and user agent."""
    return f"{request.client_address}:{request.user_agent or _UNKNOWN}"


class AdminGateway:
    """Ordered rate-limit and authorization checks for protected routes.

    Parameters
    ----------
    resolver
        Resolves session tokens into callers.
    limiters
        One rate limiter per access policy.
    key_func
        Derives the rate-limit key from a request.

    """

    def __init__(
        self,
        resolver: SessionResolver,
        limiters: typ.Mapping[AccessPolicy, FixedWindowRateLimiter],
        *,
        key_func: typ.Callable[[GatewayRequest], str] = default_client_key,
    ) -> None:
        """Store the resolver, limiters and key function."""
        missing = set(AccessPolicy) - set(limiters)
        if missing:
            msg = f"No rate limiter for policies: {sorted(missing)}"
            raise ValueError(msg)
        self._resolver = resolver
        self._limiters = dict(limiters)
        self._key_func = key_func

    @classmethod
    def from_config(
        cls,
        resolver: SessionResolver,
        config: GatewayConfig,
    ) -> AdminGateway:
        """Build a gateway with limiters sized from *config*."""
        return cls(
            resolver,
            {
                AccessPolicy.ADMIN: FixedWindowRateLimiter(
                    config.admin_max_requests,
                    config.admin_window_seconds,
                ),
                AccessPolicy.AUTHENTICATED: FixedWindowRateLimiter(
                    config.user_max_requests,
                    config.user_window_seconds,
                ),
            },
        )

    async def admit(
        self,
        request: GatewayRequest,
        policy: AccessPolicy,
        *,
        operation: str = _UNKNOWN,
    ) -> CallerSession:
        """Return the caller if the request may proceed.

        Raises
        ------
        ApiError
            ``RATE_LIMIT_EXCEEDED``, ``UNAUTHORIZED``, ``FORBIDDEN``, or
            ``INTERNAL_ERROR`` when the session lookup itself fails.

        """
        verdict = await self._limiters[policy].hit(self._key_func(request))
        if not verdict.allowed:
            log_warning(
                logger,
                "[%s] rate limit exceeded for %s",
                operation,
                request.client_address,
            )
            raise ApiError.rate_limited(verdict)

        caller = await self._resolve(request, operation)
        if caller is None:
            raise ApiError.unauthenticated()
        if policy is AccessPolicy.ADMIN and not caller.is_admin:
            raise ApiError.forbidden()
        return caller

    async def _resolve(
        self, request: GatewayRequest, operation: str
    ) -> CallerSession | None:
        if request.token is None:
            return None
        try:
            return await self._resolver.resolve(request.token)
        except Exception as exc:
            log_operation_failure(logger, operation, exc)
            raise ApiError.internal("Authentication check failed") from exc


class GatewayMiddleware:
    """Falcon middleware that runs ``AdminGateway`` before each responder.

    Resources without an ``access_policy`` attribute (health probes) are
    public.
    """

    def __init__(
        self,
        gateway: AdminGateway,
        *,
        trust_forwarded_headers: bool = True,
    ) -> None:
        """Store the gateway and client identification setting."""
        self._gateway = gateway
        self._trust_forwarded_headers = trust_forwarded_headers

    async def process_resource(
        self,
        req: Request,
        _resp: Response,
        resource: object,
        _params: dict[str, typ.Any],
    ) -> None:
        """Tag the request with its operation and admit or reject it."""
        operation = getattr(resource, "operation_tag", None) or _UNKNOWN
        req.context.operation = operation
        policy: AccessPolicy | None = getattr(resource, "access_policy", None)
        if policy is None:
            return
        request = GatewayRequest.from_falcon(
            req, trust_forwarded_headers=self._trust_forwarded_headers
        )
        req.context.caller = await self._gateway.admit(
            request, policy, operation=operation
        )
