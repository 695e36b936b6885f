"""Capture femtologging output in tests.

Usage
-----
>>> with capture_femto_logs("plexwrap.jobs.store") as capture:
...     await store.complete(job_id, {})
...     capture.wait_for_count(1)
>>> capture.records[0].level in WARNING_LEVELS
True

"""

from __future__ import annotations

import contextlib
import dataclasses
import threading
import time
import typing as typ

from femtologging import get_logger

WARNING_LEVELS = frozenset({"WARN", "WARNING"})


@dataclasses.dataclass(slots=True)
class FemtoLogRecord:
    """One captured record."""

    logger: str
    level: str
    message: str
    exc_info: object | None = None


class FemtoLogCapture:
    """Handler collecting records delivered by the femtologging worker."""

    def __init__(self) -> None:
        """Start with no records."""
        self.records: list[FemtoLogRecord] = []
        self._condition = threading.Condition()

    def handle(self, logger: str, level: str, message: str) -> None:
        """Receive a plain record."""
        self._append(
            FemtoLogRecord(logger=str(logger), level=str(level), message=message)
        )

    def handle_record(self, record: dict[str, object]) -> None:
        """Receive a structured record."""
        self._append(
            FemtoLogRecord(
                logger=str(record.get("logger", "")),
                level=str(record.get("level", "")),
                message=str(record.get("message", "")),
                exc_info=record.get("exc_info"),
            )
        )

    def _append(self, record: FemtoLogRecord) -> None:
        with self._condition:
            self.records.append(record)
            self._condition.notify_all()

    def messages(self) -> list[str]:
        """Return the captured messages in arrival order."""
        with self._condition:
            return [record.message for record in self.records]

    def wait_for_count(self, count: int, timeout: float = 1.0) -> None:
        """Block until at least *count* records arrived, or fail."""
        deadline = time.monotonic() + timeout
        with self._condition:
            while len(self.records) < count:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._condition.wait(timeout=remaining)
        assert len(self.records) >= count, (
            f"Expected {count} records, got {len(self.records)}"
        )


@contextlib.contextmanager
def capture_femto_logs(
    logger_name: str,
    *,
    level: str = "TRACE",
) -> typ.Iterator[FemtoLogCapture]:
    """Attach a capturing handler to *logger_name* for the block."""
    logger = get_logger(logger_name)
    previous_level = logger.level
    previous_propagate = logger.propagate

    logger.set_level(level)
    logger.set_propagate(False)
    handler = FemtoLogCapture()
    logger.add_handler(handler)
    try:
        yield handler
    finally:
        logger.remove_handler(handler)
        logger.set_level(previous_level)
        logger.set_propagate(previous_propagate)
