"""Logging helpers layered over femtologging.

Plexwrap hands femtologging fully formatted strings: templates use
percent-style placeholders and are interpolated here, before the record
crosses into the femtologging worker thread.

Example:
>>> from plexwrap.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Dispatched %s for %d", "subject-1", 2024)

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger

_DEFAULT_LEVEL = "INFO"


class LogLevel(enum.StrEnum):
    """Level names accepted by femtologging."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SupportsLog(typ.Protocol):
    """Subset of the femtologging logger API used by Plexwrap."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Normalize a raw level name.

    Parameters
    ----------
    level : str | None
        Level name as supplied by the operator, in any case.

    Returns
    -------
    tuple[str, bool]
        The level to use and ``True`` when the input was missing or unknown
        and ``INFO`` was substituted.

    """
    candidate = (level or "").strip().upper()
    if candidate in LogLevel.__members__:
        return (candidate, False)
    return (_DEFAULT_LEVEL, True)


def configure_logging(level: str | None, *, force: bool = False) -> tuple[str, bool]:
    """Install the femtologging root configuration at *level*.

    Returns the same tuple as :func:`normalize_log_level` so callers can warn
    about a substituted level once logging is live.
    """
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, invalid)


def format_log_message(template: str, *args: object) -> str:
    """Interpolate *args* into *template* using ``%`` formatting."""
    if not args:
        return template
    return template % args


def _emit(
    logger: SupportsLog,
    level: LogLevel,
    template: str,
    args: tuple[object, ...],
    exc_info: object | None,
) -> None:
    logger.log(
        level.value,
        format_log_message(template, *args),
        exc_info=exc_info,
        stack_info=False,
    )


def log_debug(
    logger: SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a DEBUG message built from *template* and *args*."""
    _emit(logger, LogLevel.DEBUG, template, args, exc_info)


def log_info(
    logger: SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an INFO message built from *template* and *args*."""
    _emit(logger, LogLevel.INFO, template, args, exc_info)


def log_warning(
    logger: SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a WARNING message built from *template* and *args*."""
    _emit(logger, LogLevel.WARNING, template, args, exc_info)


def log_error(
    logger: SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an ERROR message built from *template* and *args*."""
    _emit(logger, LogLevel.ERROR, template, args, exc_info)


def log_exception(logger: SupportsLog, message: str, exc: BaseException) -> None:
    """Log *message* at ERROR with *exc* attached as the traceback source."""
    _emit(logger, LogLevel.ERROR, message, (), exc)


def log_operation_failure(
    logger: SupportsLog,
    operation: str,
    exc: BaseException,
) -> None:
    """Log an exception that was hidden from a client behind a generic error.

    Parameters
    ----------
    logger : SupportsLog
        Logger receiving the record.
    operation : str
        Stable operation tag (for example ``wrapped.generate``) used to
        correlate the sanitized client response with this record.
    exc : BaseException
        The internal failure. Its type and message are logged, never
        returned to the caller.

    """
    _emit(
        logger,
        LogLevel.ERROR,
        "[%s] operation failed: %s: %s",
        (operation, type(exc).__name__, exc),
        exc,
    )


__all__ = [
    "LogLevel",
    "SupportsLog",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_debug",
    "log_error",
    "log_exception",
    "log_info",
    "log_operation_failure",
    "log_warning",
    "normalize_log_level",
]
