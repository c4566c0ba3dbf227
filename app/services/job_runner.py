"""
In-process runner that executes generation jobs as background asyncio tasks.

Usage
-----
    runner = JobRunner(max_concurrent=4, on_crash=record_crash)

    task = runner.submit(job_id, orchestrator.run(job_id, ...))
    # ... later ...
    runner.is_running(job_id)
    await runner.join(job_id)

The runner only schedules work; the lifecycle of every job (start, success,
failure) is written to the Job Status Store by the orchestrator.  Swapping
this class for a queue-backed enqueuer only has to preserve ``submit``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, Dict, Optional

logger = logging.getLogger(__name__)

CrashHandler = Callable[[int, BaseException], Awaitable[None]]


class JobAlreadyRunning(RuntimeError):
    """A second run was submitted for a job whose task has not finished."""


class JobRunner:
    """Tracks one background asyncio.Task per job id."""

    def __init__(
        self,
        max_concurrent: int = 0,
        on_crash: Optional[CrashHandler] = None,
    ) -> None:
        self._tasks: Dict[int, asyncio.Task] = {}
        self._semaphore = asyncio.Semaphore(max_concurrent) if max_concurrent > 0 else None
        self._on_crash = on_crash

    def set_crash_handler(self, handler: Optional[CrashHandler]) -> None:
        self._on_crash = handler

    def is_running(self, job_id: int) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    def submit(self, job_id: int, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """
        Launch *coro* as the background run of *job_id* and return its task.

        Raises:
            JobAlreadyRunning: the job already has an unfinished task.
        """
        if self.is_running(job_id):
            coro.close()
            raise JobAlreadyRunning(f"Generation already running for job {job_id}")

        async def _wrapper() -> None:
            try:
                if self._semaphore is not None:
                    async with self._semaphore:
                        await coro
                else:
                    await coro
            except Exception as exc:
                logger.error(
                    "Generation task crashed for job %d: %s", job_id, exc, exc_info=True
                )
                if self._on_crash is not None:
                    try:
                        await self._on_crash(job_id, exc)
                    except Exception as handler_exc:
                        logger.error(
                            "Could not record crash of job %d: %s", job_id, handler_exc
                        )

        task = asyncio.create_task(_wrapper(), name=f"generation-job-{job_id}")
        self._tasks[job_id] = task

        # Cleanup reference when done
        task.add_done_callback(lambda _t: self._cleanup(job_id, _t))

        logger.info("Generation task submitted for job %d", job_id)
        return task

    async def join(self, job_id: int) -> None:
        """Wait until the task of *job_id* (if any) has finished."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for all running tasks, up to *timeout* seconds."""
        pending = [task for task in self._tasks.values() if not task.done()]
        if not pending:
            return
        logger.info("Waiting for %d running generation task(s) …", len(pending))
        _done, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            logger.warning(
                "%d generation task(s) still running at shutdown", len(still_running)
            )

    def _cleanup(self, job_id: int, task: asyncio.Task) -> None:
        """Remove the task reference once it has finished."""
        if self._tasks.get(job_id) is task:
            self._tasks.pop(job_id, None)
