"""Falcon ASGI surface for Plexwrap."""

from __future__ import annotations

from .app import AppDependencies, create_app
from .errors import ApiError, ErrorCode

__all__ = ["ApiError", "AppDependencies", "ErrorCode", "create_app"]
