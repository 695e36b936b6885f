"""Unit tests for the generation launchers."""

from __future__ import annotations

import asyncio
from unittest import mock

import pytest

from plexwrap.generation import DramatiqLauncher, InProcessLauncher
from plexwrap.jobs import GenerationTicket, JobStatus

TICKET = GenerationTicket(job_id="job-1", subject_id="sub-1", period=2024, attempt=1)


class _GatedGenerator:
    """Generator stand-in that finishes when released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.started: list[GenerationTicket] = []
        self.cancelled: list[GenerationTicket] = []

    async def run(self, ticket: GenerationTicket) -> JobStatus:
        self.started.append(ticket)
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled.append(ticket)
            raise
        return JobStatus.COMPLETED


class TestInProcessLauncher:
    """Tasks are tracked until they finish and cancelled on close."""

    @pytest.mark.asyncio
    async def test_launch_returns_before_generation_finishes(self) -> None:
        """Launching hands the ticket to a task and returns at once."""
        generator = _GatedGenerator()
        launcher = InProcessLauncher(generator)  # type: ignore[arg-type]

        await launcher.launch(TICKET)
        await asyncio.sleep(0)

        assert generator.started == [TICKET]
        assert launcher.in_flight == 1, "task should still be tracked"

        generator.release.set()
        await launcher.drain()
        assert launcher.in_flight == 0

    @pytest.mark.asyncio
    async def test_drain_timeout_cancels_remaining(self) -> None:
        """Tasks still running after the timeout are cancelled and awaited."""
        generator = _GatedGenerator()
        launcher = InProcessLauncher(generator)  # type: ignore[arg-type]
        await launcher.launch(TICKET)
        await asyncio.sleep(0)

        await launcher.drain(timeout=0.01)

        assert generator.cancelled == [TICKET]
        assert launcher.in_flight == 0

    @pytest.mark.asyncio
    async def test_aclose_cancels_running_tasks(self) -> None:
        """Closing the launcher cancels whatever is still generating."""
        generator = _GatedGenerator()
        launcher = InProcessLauncher(generator)  # type: ignore[arg-type]
        await launcher.launch(TICKET)
        await asyncio.sleep(0)

        await launcher.aclose()

        assert generator.cancelled == [TICKET]

    @pytest.mark.asyncio
    async def test_drain_without_tasks(self) -> None:
        """Draining an idle launcher returns immediately."""
        launcher = InProcessLauncher(_GatedGenerator())  # type: ignore[arg-type]
        await launcher.drain()
        assert launcher.in_flight == 0


class TestDramatiqLauncher:
    """The Dramatiq launcher enqueues one actor message per ticket."""

    @pytest.mark.asyncio
    async def test_launch_sends_message(self) -> None:
        """The message carries the database URL and the ticket fields."""
        from plexwrap.generation.actor import generate_wrapped_job

        launcher = DramatiqLauncher("sqlite+aiosqlite:///jobs.db")
        with mock.patch.object(generate_wrapped_job, "send") as send:
            await launcher.launch(TICKET)

        send.assert_called_once_with(
            "sqlite+aiosqlite:///jobs.db", "job-1", "sub-1", 2024, 1
        )
        await launcher.aclose()
