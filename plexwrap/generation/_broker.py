"""Lazy Dramatiq broker setup for Plexwrap actors."""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

_BROKER_LOCK = threading.Lock()
_broker_ready = False
_PYTEST_ENV_MARKERS = ("PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER")


def _stub_broker_allowed() -> bool:
    """Return True under pytest or when ``PLEXWRAP_ALLOW_STUB_BROKER`` is truthy."""
    flag = os.environ.get("PLEXWRAP_ALLOW_STUB_BROKER", "").strip().lower()
    if flag in {"1", "true", "yes"}:
        return True
    return "pytest" in sys.modules or any(
        marker in os.environ for marker in _PYTEST_ENV_MARKERS
    )


def ensure_broker_configured() -> None:
    """Make sure Dramatiq has a broker before an actor runs or is sent.

    Idempotent and safe to call from several worker threads.

    Raises
    ------
    RuntimeError
        If no broker is configured and the stub broker is not allowed.

    """
    global _broker_ready

    if _broker_ready:
        return

    with _BROKER_LOCK:
        if _broker_ready:
            return
        try:
            broker = dramatiq.get_broker()
        except (ImportError, LookupError):
            broker = None

        if broker is None:
            if not _stub_broker_allowed():
                msg = (
                    "No Dramatiq broker configured. Set "
                    "PLEXWRAP_ALLOW_STUB_BROKER=1 for local runs or configure "
                    "a real broker."
                )
                raise RuntimeError(msg)
            dramatiq.set_broker(StubBroker())

        _broker_ready = True
