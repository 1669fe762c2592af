"""Periodic jobs for reelgrab.

The search loop and one poll loop per download client run as separate
APScheduler interval jobs, so a slow indexer or an unreachable client
only delays its own loop.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

from apscheduler.triggers.interval import IntervalTrigger
from pydantic import BaseModel, Field

from . import config, logger

if TYPE_CHECKING:
    from apscheduler.schedulers.asyncio import AsyncIOScheduler

    from .core import AcquisitionOrchestrator
    from .db import LibraryStore


class JobType(StrEnum):
    """Kinds of periodic job."""

    SEARCH = "search"
    POLL = "poll"


class JobResponse(BaseModel):
    """Response model for job commands and status queries."""

    status: str = Field(..., description="not_found, conflict, success, active or running")
    message: str = Field(default="", description="Status message")
    job_name: str = Field(..., description="Job identifier")
    next_run: datetime | None = Field(default=None, description="Next scheduled run")
    last_run: datetime | None = Field(default=None, description="Last completed run")


def job_id(job_type: JobType, client_name: str | None = None) -> str:
    """Scheduler id of a job; poll jobs are keyed by client name."""
    if job_type is JobType.POLL:
        if not client_name:
            raise ValueError("Poll jobs need a client name")
        return f"{JobType.POLL}_{client_name}"
    return str(job_type)


class JobManager:
    """Registers and runs the periodic search and poll jobs."""

    def __init__(
        self,
        scheduler: "AsyncIOScheduler",
        database: "LibraryStore",
        core: "AcquisitionOrchestrator",
    ) -> None:
        self.scheduler = scheduler
        self.database = database
        self.core = core
        self._running_jobs: set[str] = set()

    @asynccontextmanager
    async def _job_execution_context(self, name: str) -> AsyncIterator[None]:
        """Mark a job running, record its completion and contain its errors."""
        self._running_jobs.add(name)
        started = datetime.now(UTC)
        try:
            yield
        except Exception as e:
            logger.exception("Job %s failed: %s", name, e)
        finally:
            self._running_jobs.discard(name)
            try:
                await self.database.update_job_run(name, started)
            except Exception as e:
                logger.error("Could not record run of job %s: %s", name, e)

    async def _run_search_job(self) -> None:
        async with self._job_execution_context(job_id(JobType.SEARCH)):
            await self.core.search_pass()

    async def _run_poll_job(self, client_name: str) -> None:
        async with self._job_execution_context(job_id(JobType.POLL, client_name)):
            stats = await self.core.poll_client(client_name)
            if stats.completed or stats.failed:
                logger.info(
                    "Poll %s: %d completed, %d failed", client_name, stats.completed, stats.failed
                )

    def _add_interval_job(
        self, func: Callable[..., Awaitable[None]], name: str, minutes: float, args: list | None = None
    ) -> None:
        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(minutes=minutes),
            args=args or [],
            id=name,
            name=name,
            misfire_grace_time=None,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            next_run_time=datetime.now(UTC) + timedelta(seconds=5),
        )

    def start_jobs(self, client_names: list[str]) -> None:
        """Register the search job and one poll job per client."""
        search = config.cfg.search
        self._add_interval_job(self._run_search_job, job_id(JobType.SEARCH), search.interval)
        logger.info("Search job scheduled every %d minute(s)", search.interval)

        intervals = {c.name: c.poll_interval for c in config.cfg.downloader.clients}
        for name in client_names:
            seconds = intervals.get(name, 30)
            self._add_interval_job(
                self._run_poll_job, job_id(JobType.POLL, name), seconds / 60, args=[name]
            )
            logger.info("Poll job for %s scheduled every %d second(s)", name, seconds)

    async def trigger_job_early(
        self, job_type: JobType, client_name: str | None = None
    ) -> JobResponse:
        """Run a scheduled job now instead of waiting for its next tick."""
        name = job_id(job_type, client_name)
        if self.scheduler.get_job(name) is None:
            return JobResponse(status="not_found", message=f"Job {name} not found", job_name=name)
        if name in self._running_jobs:
            return JobResponse(
                status="conflict", message=f"Job {name} is already running", job_name=name
            )
        self.scheduler.modify_job(name, next_run_time=datetime.now(UTC))
        logger.info("Triggered job %s early", name)
        return JobResponse(status="success", message=f"Job {name} triggered", job_name=name)

    async def get_job_status(
        self, job_type: JobType, client_name: str | None = None
    ) -> JobResponse:
        name = job_id(job_type, client_name)
        job = self.scheduler.get_job(name)
        if job is None:
            return JobResponse(status="not_found", message=f"Job {name} not found", job_name=name)
        last_run = await self.database.get_job_last_run(name)
        return JobResponse(
            status="running" if name in self._running_jobs else "active",
            job_name=name,
            next_run=job.next_run_time,
            last_run=last_run,
        )
