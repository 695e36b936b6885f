"""Errors raised while building a Wrapped report."""

from __future__ import annotations

from plexwrap.jobs.errors import WrappedError

DEFAULT_FAILURE_MESSAGE = "Failed to generate wrapped"


class WrappedGenerationError(WrappedError):
    """A builder failure whose message is safe to show the subject.

    Any other exception raised by a builder is recorded on the job as
    ``DEFAULT_FAILURE_MESSAGE``.
    """

    public_message = DEFAULT_FAILURE_MESSAGE

    def __init__(self, public_message: str | None = None) -> None:
        """Use *public_message* for both the job row and the exception text."""
        if public_message:
            self.public_message = public_message
        super().__init__(self.public_message)

    @classmethod
    def missing_media_account(cls) -> WrappedGenerationError:
        """Build the error for a subject without a linked media account."""
        return cls("User does not have a Plex user ID")

    @classmethod
    def subject_missing(cls) -> WrappedGenerationError:
        """Build the error for a subject deleted after dispatch."""
        return cls("User not found")


class StatisticsSourceError(Exception):
    """The statistics backend could not be reached or returned bad data."""


class GenerationConfigError(ValueError):
    """Generation settings in the environment are invalid."""

    @classmethod
    def invalid_choice(
        cls, env_var: str, raw: str, choices: frozenset[str]
    ) -> GenerationConfigError:
        """Build the error for an unsupported enumerated setting."""
        allowed = ", ".join(sorted(choices))
        return cls(f"{env_var} must be one of {allowed}; got {raw!r}")

    @classmethod
    def missing(cls, env_var: str, reason: str) -> GenerationConfigError:
        """Build the error for a required setting that is absent."""
        return cls(f"{env_var} is required {reason}")
