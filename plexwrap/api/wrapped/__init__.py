"""Wrapped generation HTTP resources."""

from __future__ import annotations

from .resources import (
    BulkGenerateResource,
    WrappedGenerateResource,
    WrappedStatusResource,
)

__all__ = ["BulkGenerateResource", "WrappedGenerateResource", "WrappedStatusResource"]
