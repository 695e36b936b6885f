"""Launchers hand accepted attempts to an independent execution path.

``InProcessLauncher`` runs the generator as an ``asyncio.Task`` on the
current loop and keeps a handle to every task until it finishes, so none is
garbage collected mid-run and shutdown can wait for them. ``DramatiqLauncher``
enqueues a message for a worker process instead.
"""

from __future__ import annotations

import asyncio
import typing as typ

from plexwrap.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from plexwrap.generation.generator import WrappedGenerator
    from plexwrap.jobs.models import GenerationTicket

logger = get_logger(__name__)


class InProcessLauncher:
    """Run generators as tracked tasks in this process."""

    def __init__(self, generator: WrappedGenerator) -> None:
        """Store the generator that each task will run."""
        self._generator = generator
        self._tasks: set[asyncio.Task[object]] = set()

    @property
    def in_flight(self) -> int:
        """Return the number of generator tasks still running."""
        return len(self._tasks)

    async def launch(self, ticket: GenerationTicket) -> None:
        """Start a task generating *ticket* and return immediately."""
        task: asyncio.Task[object] = asyncio.create_task(
            self._generator.run(ticket),
            name=f"wrapped-{ticket.job_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self, *, timeout: float | None = None) -> None:
        """Wait for running tasks; cancel whatever is left after *timeout*.

        Cancelled generators still record their attempt as failed.
        """
        pending = set(self._tasks)
        if not pending:
            return
        log_info(logger, "Waiting for %d wrapped generation task(s)", len(pending))
        _done, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel running tasks and wait for their finalizers."""
        await self.drain(timeout=0)


class DramatiqLauncher:
    """Send attempts to Dramatiq workers.

    Parameters
    ----------
    database_url
        SQLAlchemy URL the worker uses to reach the job store.

    """

    def __init__(self, database_url: str) -> None:
        """Store the database URL passed in each message."""
        self._database_url = database_url

    async def launch(self, ticket: GenerationTicket) -> None:
        """Enqueue ``generate_wrapped_job`` for *ticket*."""
        from plexwrap.generation.actor import generate_wrapped_job

        await asyncio.to_thread(
            generate_wrapped_job.send,
            self._database_url,
            ticket.job_id,
            ticket.subject_id,
            ticket.period,
            ticket.attempt,
        )

    async def aclose(self) -> None:
        """Nothing to release; workers own their tasks."""
