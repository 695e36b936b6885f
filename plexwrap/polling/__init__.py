"""Client-side polling of Wrapped job status."""

from __future__ import annotations

from .client import (
    TIMED_OUT_MESSAGE,
    PollCallbacks,
    PollingController,
    PollOutcome,
    PollOutcomeKind,
    PollState,
    StatusFetcher,
    StatusPoller,
)
from .config import PollingConfig
from .errors import PollingAccessError, TransientPollError
from .fetchers import HttpStatusFetcher, ServiceStatusFetcher
from .ticker import AsyncioTicker, CancellationToken, Ticker

__all__ = [
    "TIMED_OUT_MESSAGE",
    "AsyncioTicker",
    "CancellationToken",
    "HttpStatusFetcher",
    "PollCallbacks",
    "PollOutcome",
    "PollOutcomeKind",
    "PollState",
    "PollingAccessError",
    "PollingConfig",
    "PollingController",
    "ServiceStatusFetcher",
    "StatusFetcher",
    "StatusPoller",
    "Ticker",
    "TransientPollError",
]
