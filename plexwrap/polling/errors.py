"""Errors raised by status fetchers."""

from __future__ import annotations


class TransientPollError(Exception):
    """A single status query failed; the next tick may succeed.

    The poller logs it and keeps polling.
    """


class PollingAccessError(Exception):
    """The status endpoint refused the credentials; polling cannot continue."""

    def __init__(self, status_code: int, message: str) -> None:
        """Record the HTTP status and the server's user-safe message."""
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")
