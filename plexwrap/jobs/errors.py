"""Errors raised by the job store, dispatcher and generation policy.

Every error that can reach a client carries a ``public_message`` that is
safe to render verbatim. ``str(exc)`` may hold internal detail and is only
ever logged.
"""

from __future__ import annotations


class WrappedError(Exception):
    """Base class for Plexwrap domain errors."""

    public_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        """Initialise with an optional internal message."""
        super().__init__(message or self.public_message)


class JobStoreError(WrappedError):
    """The job store could not be read or written."""

    public_message = "Wrapped job storage is unavailable"


class DispatchFailedError(WrappedError):
    """A generation attempt could not be started; prior state is unchanged."""

    public_message = "Failed to start wrapped generation"


class JobNotFoundError(WrappedError):
    """No job has ever been dispatched for the requested key."""

    public_message = "Wrapped not found"

    def __init__(self, subject_id: str, period: int) -> None:
        """Record the key that had no job."""
        self.subject_id = subject_id
        self.period = period
        super().__init__(f"No wrapped job for subject {subject_id} period {period}")


class SubjectNotFoundError(WrappedError):
    """The subject named in a request does not exist."""

    public_message = "User not found"

    def __init__(self, subject_id: str) -> None:
        """Record the missing subject identifier."""
        self.subject_id = subject_id
        super().__init__(f"Subject {subject_id} does not exist")


class GenerationDisabledError(WrappedError):
    """Wrapped generation is switched off by configuration."""

    public_message = "Wrapped generation is currently disabled"


class AccessDeniedError(WrappedError):
    """The caller may not perform the requested operation on this subject."""

    def __init__(self, public_message: str) -> None:
        """Use *public_message* both internally and for the client."""
        self.public_message = public_message
        super().__init__(public_message)

    @classmethod
    def generate_for_other(cls) -> AccessDeniedError:
        """Build the error for generating another subject's first report."""
        return cls("Unauthorized: You can only generate your own wrapped")

    @classmethod
    def retry_for_other(cls) -> AccessDeniedError:
        """Build the error for retrying another subject's report."""
        return cls("Unauthorized: You can only retry your own wrapped")

    @classmethod
    def regenerate_requires_admin(cls) -> AccessDeniedError:
        """Build the error for regenerating a completed report without admin."""
        return cls("Only admins can regenerate wrapped data")

    @classmethod
    def read_for_other(cls) -> AccessDeniedError:
        """Build the error for reading another subject's status."""
        return cls("Unauthorized: You can only view your own wrapped")

    @classmethod
    def admin_required(cls) -> AccessDeniedError:
        """Build the error for admin-only operations."""
        return cls("Admin access required")
