"""Unit tests for the femtologging helpers in ``plexwrap.logging``."""

from __future__ import annotations

import pytest

import plexwrap.logging as plexwrap_logging
from plexwrap.logging import (
    configure_logging,
    format_log_message,
    log_debug,
    log_exception,
    log_info,
    log_operation_failure,
    log_warning,
    normalize_log_level,
)


class _RecordingLogger:
    """Collects ``log`` calls for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object | None, bool]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        self.calls.append((level, message, exc_info, stack_info))
        return message


class TestNormalizeLogLevel:
    """Level names are upper-cased and unknown names fall back to INFO."""

    @pytest.mark.parametrize(
        ("raw", "expected", "invalid"),
        [
            ("debug", "DEBUG", False),
            (" Warn ", "WARN", False),
            ("CRITICAL", "CRITICAL", False),
            (None, "INFO", True),
            ("", "INFO", True),
            ("verbose", "INFO", True),
        ],
    )
    def test_normalize(self, raw: str | None, expected: str, *, invalid: bool) -> None:
        """Normalization returns the level and whether it was substituted."""
        assert normalize_log_level(raw) == (expected, invalid), (
            f"unexpected normalization for {raw!r}"
        )


class TestFormatting:
    """Templates are interpolated before reaching femtologging."""

    def test_percent_arguments_are_applied(self) -> None:
        """Arguments fill percent placeholders."""
        assert format_log_message("job %s attempt %d", "j-1", 2) == "job j-1 attempt 2"

    def test_template_without_arguments_is_untouched(self) -> None:
        """A literal percent sign survives when no arguments are given."""
        assert format_log_message("100% done") == "100% done"


class TestEmitters:
    """Each helper forwards the right level and formatted message."""

    def test_log_info(self) -> None:
        """INFO records carry the formatted message and no traceback."""
        logger = _RecordingLogger()
        log_info(logger, "hello %s", "world")
        assert logger.calls == [("INFO", "hello world", None, False)]

    def test_log_debug(self) -> None:
        """DEBUG records use the DEBUG level."""
        logger = _RecordingLogger()
        log_debug(logger, "race for %s", "k")
        assert logger.calls == [("DEBUG", "race for k", None, False)]

    def test_log_warning_forwards_exc_info(self) -> None:
        """Warnings may carry exception info."""
        logger = _RecordingLogger()
        exc = ValueError("boom")
        log_warning(logger, "retrying %s", "x", exc_info=exc)
        assert logger.calls == [("WARNING", "retrying x", exc, False)]

    def test_log_exception_attaches_exception(self) -> None:
        """log_exception emits ERROR with the exception as exc_info."""
        logger = _RecordingLogger()
        exc = RuntimeError("db down")
        log_exception(logger, "Could not record 50% of jobs", exc)
        assert logger.calls == [("ERROR", "Could not record 50% of jobs", exc, False)]

    def test_log_operation_failure_includes_tag_and_type(self) -> None:
        """Operation failures are tagged so clients' generic errors can be traced."""
        logger = _RecordingLogger()
        exc = KeyError("secret-detail")
        log_operation_failure(logger, "wrapped.generate", exc)
        level, message, exc_info, _stack = logger.calls[0]
        assert level == "ERROR"
        assert message.startswith("[wrapped.generate] operation failed: KeyError")
        assert "secret-detail" in message
        assert exc_info is exc


@pytest.mark.parametrize(
    ("raw", "expected", "invalid"),
    [("debug", "DEBUG", False), ("loud", "INFO", True)],
)
def test_configure_logging_installs_normalized_level(
    monkeypatch: pytest.MonkeyPatch,
    raw: str,
    expected: str,
    *,
    invalid: bool,
) -> None:
    """configure_logging passes the normalized level to basicConfig."""
    captured: dict[str, object] = {}

    def fake_basic_config(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr(plexwrap_logging, "basicConfig", fake_basic_config)

    assert configure_logging(raw) == (expected, invalid)
    assert captured == {"level": expected, "force": False}
