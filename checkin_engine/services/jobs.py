"""
JobOrchestrator: a registry of named periodic jobs on an APScheduler
AsyncIOScheduler.

One orchestrator is built at startup and handed to whoever needs job
status; there is no module-level scheduler. Every job owns an asyncio lock:
a scheduled tick that finds the previous run of the same job still going is
skipped, and a manual trigger waits for it. stop() lets in-flight runs
finish before shutting the scheduler down.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger

from checkin_engine.core.errors import JobNotFound
from checkin_engine.utils.time import ensure_aware, utcnow

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


@dataclass
class JobState:
    name: str
    func: JobFunc
    trigger: BaseTrigger
    schedule: str
    description: str = ""
    paused: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    runs: int = 0
    skipped: int = 0
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_result: Any = None
    last_error: Optional[str] = None


@dataclass(slots=True)
class JobStatus:
    name: str
    description: str
    schedule: str
    scheduled: bool
    running: bool
    next_run_time: Optional[datetime]
    runs: int
    skipped: int
    last_started_at: Optional[datetime]
    last_finished_at: Optional[datetime]
    last_result: Any
    last_error: Optional[str]


class JobOrchestrator:
    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None, *, timezone: str = "UTC"):
        self.timezone = timezone
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone)
        self._jobs: dict[str, JobState] = {}
        self._inflight: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._scheduler.running

    def job_names(self) -> list[str]:
        return list(self._jobs)

    # -- registry --------------------------------------------------------

    def register(
        self,
        name: str,
        schedule: Union[str, BaseTrigger],
        func: JobFunc,
        *,
        description: str = "",
    ) -> JobState:
        """
        Register `func` under `name`. A crontab string is read in the
        orchestrator's timezone. Re-registering a name stops the old job first;
        the replacement shares its lock, so it never overlaps a run of the
        old job that is still in flight.
        """
        if isinstance(schedule, BaseTrigger):
            trigger, text = schedule, str(schedule)
        else:
            trigger, text = CronTrigger.from_crontab(schedule, timezone=self.timezone), schedule

        previous = self._jobs.get(name)
        if previous is not None:
            logger.info("Job %s already exists, stopping it first", name)
            self.remove(name)

        state = JobState(name=name, func=func, trigger=trigger, schedule=text, description=description)
        if previous is not None:
            state.lock = previous.lock
        self._jobs[name] = state
        self._add_to_scheduler(state)
        logger.info("Scheduled job: %s with schedule: %s", name, text)
        return state

    def remove(self, name: str) -> None:
        state = self._get(name)
        if not state.paused:
            self._scheduler.remove_job(name)
        del self._jobs[name]
        logger.info("Removed job: %s", name)

    def stop_job(self, name: str) -> None:
        """Stop firing `name` on its schedule; it stays registered."""
        state = self._get(name)
        if state.paused:
            return
        self._scheduler.remove_job(name)
        state.paused = True
        logger.info("Stopped job: %s", name)

    def start_job(self, name: str) -> None:
        state = self._get(name)
        if not state.paused:
            return
        state.paused = False
        self._add_to_scheduler(state)
        logger.info("Restarted job: %s", name)

    # -- lifecycle -------------------------------------------------------

    def start(self) -> None:
        if self._scheduler.running:
            logger.info("Job orchestrator is already running")
            return
        self._scheduler.start()
        logger.info("Job orchestrator started with %d jobs", len(self._jobs))

    async def stop(self) -> None:
        """
        Stop firing new runs, wait for in-flight runs, then shut down.
        """
        if not self._scheduler.running:
            logger.info("Job orchestrator is not running")
            return
        self._scheduler.pause()
        pending = [t for t in self._inflight if not t.done()]
        if pending:
            logger.info("Waiting for %d in-flight job run(s) to finish", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        # AsyncIOExecutor cancels whatever is still pending on shutdown
        self._scheduler.shutdown(wait=False)
        # AsyncIOScheduler applies the shutdown on the next loop iteration
        await asyncio.sleep(0)
        logger.info("Job orchestrator stopped")

    # -- execution -------------------------------------------------------

    async def trigger(self, name: str) -> Any:
        """
        Run a job body now, outside its schedule, and return its result.
        Waits for a scheduled run of the same job that is still executing.
        """
        state = self._get(name)
        async with state.lock:
            return await self._execute(state, manual=True)

    async def _scheduled_run(self, name: str) -> None:
        state = self._jobs.get(name)
        if state is None:
            return
        if state.lock.locked():
            state.skipped += 1
            logger.warning("Job %s is still running, skipping overlapping run", name)
            return
        async with state.lock:
            await self._execute(state, manual=False)

    async def _execute(self, state: JobState, *, manual: bool) -> Any:
        task = asyncio.current_task()
        if task is not None:
            self._inflight.add(task)
        state.last_started_at = utcnow()
        logger.info("Running job %s%s", state.name, " (manual trigger)" if manual else "")
        try:
            result = await state.func()
        except Exception as e:
            state.last_error = str(e)
            logger.exception("Error in job %s", state.name)
            if manual:
                raise
            return None
        else:
            state.last_result = result
            state.last_error = None
            logger.info("Job %s finished: %s", state.name, result)
            return result
        finally:
            state.runs += 1
            state.last_finished_at = utcnow()
            if task is not None:
                self._inflight.discard(task)

    # -- status ----------------------------------------------------------

    def status(self, *, now: Optional[datetime] = None) -> list[JobStatus]:
        now_ = ensure_aware(now or utcnow())
        return [self._status_of(state, now_) for state in self._jobs.values()]

    def job_status(self, name: str, *, now: Optional[datetime] = None) -> JobStatus:
        return self._status_of(self._get(name), ensure_aware(now or utcnow()))

    def _status_of(self, state: JobState, now: datetime) -> JobStatus:
        next_run = None if state.paused else state.trigger.get_next_fire_time(None, now)
        return JobStatus(
            name=state.name,
            description=state.description,
            schedule=state.schedule,
            scheduled=not state.paused,
            running=state.lock.locked(),
            next_run_time=next_run,
            runs=state.runs,
            skipped=state.skipped,
            last_started_at=state.last_started_at,
            last_finished_at=state.last_finished_at,
            last_result=state.last_result,
            last_error=state.last_error,
        )

    # -- helpers ---------------------------------------------------------

    def _get(self, name: str) -> JobState:
        try:
            return self._jobs[name]
        except KeyError:
            raise JobNotFound(f"Unknown job: {name}") from None

    def _add_to_scheduler(self, state: JobState) -> None:
        self._scheduler.add_job(
            self._scheduled_run,
            trigger=state.trigger,
            args=[state.name],
            id=state.name,
            name=state.name,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
            replace_existing=True,
        )
