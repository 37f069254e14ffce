"""Scheduler driver - runs each registered job on its own trigger.

One asyncio task per job sleeps until the job's next fire time, runs it and
loops. A job never overlaps itself; different jobs run independently. Any
exception escaping a job is logged and kept on the job record, and the job
simply fires again at its next scheduled time.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import logfire

from appointment_engine.clock import utcnow

logger = logging.getLogger(__name__)


class Trigger(Protocol):
    def next_fire_time(self, previous: datetime | None, now: datetime) -> datetime: ...


JobFunc = Callable[[], Awaitable[object]]


@dataclass
class ScheduledJob:
    """A job and its run bookkeeping."""

    name: str
    func: JobFunc
    trigger: Trigger
    running: bool = False
    last_run_at: datetime | None = None
    last_success_at: datetime | None = None
    last_error: str | None = None
    next_run_at: datetime | None = None
    run_count: int = 0


class Scheduler:
    """Owns the scheduled jobs and their timer tasks."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.clock = clock
        self.sleep = sleep
        self._jobs: dict[str, ScheduledJob] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def add_job(self, name: str, func: JobFunc, trigger: Trigger) -> ScheduledJob:
        """Register a job under a unique name."""
        if name in self._jobs:
            raise ValueError(f"Job {name!r} is already registered")
        job = ScheduledJob(name=name, func=func, trigger=trigger)
        self._jobs[name] = job
        return job

    def get_job(self, name: str) -> ScheduledJob:
        return self._jobs[name]

    async def run_job(self, name: str) -> bool:
        """Run a job once now. Returns False if it was already running or failed."""
        job = self._jobs[name]
        if job.running:
            logger.warning("Job %s is still running, skipping this run", name)
            return False

        job.running = True
        job.last_run_at = self.clock()
        job.run_count += 1
        try:
            with logfire.span("scheduled_job {job_name}", job_name=name):
                await job.func()
        except Exception as e:
            job.last_error = f"{type(e).__name__}: {e}"
            logger.exception("Error during scheduled job %s", name)
            return False
        else:
            job.last_success_at = self.clock()
            job.last_error = None
            return True
        finally:
            job.running = False

    async def _run_forever(self, job: ScheduledJob) -> None:
        # Sleep is monotonic and may wake before the wall-clock fire time;
        # the next fire time is always computed past the previous one.
        previous_fire = None
        while True:
            now = self.clock()
            job.next_run_at = job.trigger.next_fire_time(previous_fire, now)
            delay = (job.next_run_at - now).total_seconds()
            if delay > 0:
                await self.sleep(delay)
            previous_fire = job.next_run_at
            await self.run_job(job.name)

    def start(self) -> None:
        """Start one timer task per job."""
        if self.running:
            return
        for name, job in self._jobs.items():
            self._tasks[name] = asyncio.create_task(self._run_forever(job), name=f"job:{name}")
            logger.info("Scheduled job %s (%r)", name, job.trigger)

    async def shutdown(self) -> None:
        """Cancel all timer tasks and wait for them to finish."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def job_status(self) -> list[dict]:
        """Bookkeeping for every job, for health reporting."""
        return [
            {
                "name": job.name,
                "trigger": repr(job.trigger),
                "running": job.running,
                "last_run_at": job.last_run_at,
                "last_success_at": job.last_success_at,
                "last_error": job.last_error,
                "next_run_at": job.next_run_at,
                "run_count": job.run_count,
            }
            for job in self._jobs.values()
        ]
