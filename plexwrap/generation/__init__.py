"""Wrapped report generation: builders, the generator and its launchers."""

from __future__ import annotations

from .config import BuilderBackend, GenerationConfig, LaunchBackend
from .errors import (
    DEFAULT_FAILURE_MESSAGE,
    GenerationConfigError,
    StatisticsSourceError,
    WrappedGenerationError,
)
from .factory import create_wrapped_builder, open_wrapped_builder
from .generator import INTERRUPTED_MESSAGE, WrappedGenerator, public_message_for
from .launchers import DramatiqLauncher, InProcessLauncher
from .mock import MockWrappedBuilder
from .models import ViewingStatistics, WrappedMetadata, WrappedResult, WrappedSection
from .pipeline import StatisticsWrappedBuilder, TemplateNarrator
from .protocol import StatisticsSource, WrappedBuilder, WrappedNarrator
from .sweeper import STALE_JOB_MESSAGE, StaleJobSweeper

__all__ = [
    "DEFAULT_FAILURE_MESSAGE",
    "INTERRUPTED_MESSAGE",
    "STALE_JOB_MESSAGE",
    "BuilderBackend",
    "DramatiqLauncher",
    "GenerationConfig",
    "GenerationConfigError",
    "InProcessLauncher",
    "LaunchBackend",
    "MockWrappedBuilder",
    "StaleJobSweeper",
    "StatisticsSource",
    "StatisticsSourceError",
    "StatisticsWrappedBuilder",
    "TemplateNarrator",
    "ViewingStatistics",
    "WrappedBuilder",
    "WrappedGenerationError",
    "WrappedGenerator",
    "WrappedMetadata",
    "WrappedNarrator",
    "WrappedResult",
    "WrappedSection",
    "create_wrapped_builder",
    "open_wrapped_builder",
    "public_message_for",
]
