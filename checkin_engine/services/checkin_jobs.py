"""
Bodies of the periodic check-in jobs and their default schedules.

Each body scans the store once, handles candidates one at a time and
returns a JobResult. A failure on one candidate is logged and counted; the
scan moves on to the next one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from checkin_engine.core.errors import CheckInEngineError
from checkin_engine.domain.checkin import DUE_STATUSES, CheckIn
from checkin_engine.repositories.base import CheckInQuery
from checkin_engine.services.analytics import checkin_analytics
from checkin_engine.services.checkin import miss_checkin
from checkin_engine.services.engine import CheckInEngine
from checkin_engine.services.jobs import JobOrchestrator
from checkin_engine.utils.time import ensure_aware, utcnow

logger = logging.getLogger(__name__)

CHECKIN_REMINDERS = "checkin-reminders"
OVERDUE_CHECKINS = "overdue-checkins"
WEEKLY_SUMMARIES = "weekly-summaries"
MONTHLY_SUMMARIES = "monthly-summaries"
CLEANUP = "cleanup"

# APScheduler 3 numbers weekdays from Monday=0, so weekdays are named
DEFAULT_SCHEDULES = {
    CHECKIN_REMINDERS: ("0 * * * *", "Send reminders for check-ins whose reminder window is open"),
    OVERDUE_CHECKINS: ("0 */6 * * *", "Notify about overdue check-ins and mark them missed"),
    WEEKLY_SUMMARIES: ("0 9 * * mon", "Email weekly progress summaries"),
    MONTHLY_SUMMARIES: ("0 9 1 * *", "Email monthly progress summaries"),
    CLEANUP: ("0 2 * * *", "Mark check-ins left unanswered past the retention period as missed"),
}


@dataclass(slots=True)
class JobResult:
    job: str
    scanned: int = 0
    sent: int = 0
    failed: int = 0
    transitioned: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "job": self.job,
            "scanned": self.scanned,
            "sent": self.sent,
            "failed": self.failed,
            "transitioned": self.transitioned,
            "errors": list(self.errors),
        }


def _count(result: JobResult, outcomes) -> None:
    for o in outcomes:
        if o.ok:
            result.sent += 1
        else:
            result.failed += 1


async def send_checkin_reminders(engine: CheckInEngine, *, now: Optional[datetime] = None) -> JobResult:
    now_ = ensure_aware(now or utcnow())
    result = JobResult(CHECKIN_REMINDERS)
    candidates = await engine.store.find(
        CheckInQuery(
            statuses=DUE_STATUSES,
            reminders_enabled=True,
            scheduled_from=now_,
            scheduled_to=now_ + engine.reminder_lookahead,
        )
    )
    result.scanned = len(candidates)
    for ci in candidates:
        # dispatch_reminder skips check-ins whose window is not open yet
        _count(result, await engine.dispatcher.dispatch_reminder(ci, now=now_))

    logger.info("Reminder scan: %d candidates, %d sent, %d failed", result.scanned, result.sent, result.failed)
    return result


async def _miss(engine: CheckInEngine, ci: CheckIn, now: datetime, result: JobResult) -> None:
    try:
        await miss_checkin(engine.store, ci.id, now=now, max_retries=engine.max_retries)
    except CheckInEngineError as e:
        result.errors.append(f"{ci.id}: {e.message}")
        logger.error("Could not mark check-in %s as missed: %s", ci.id, e.message)
    else:
        result.transitioned += 1


async def process_overdue_checkins(engine: CheckInEngine, *, now: Optional[datetime] = None) -> JobResult:
    now_ = ensure_aware(now or utcnow())
    result = JobResult(OVERDUE_CHECKINS)
    candidates = await engine.store.find(CheckInQuery(statuses=DUE_STATUSES, scheduled_before=now_))
    result.scanned = len(candidates)
    for ci in candidates:
        _count(result, await engine.dispatcher.dispatch_overdue(ci, now=now_))
        await _miss(engine, ci, now_, result)

    logger.info(
        "Overdue scan: %d candidates, %d notices sent, %d missed",
        result.scanned, result.sent, result.transitioned,
    )
    return result


async def send_progress_summaries(
    engine: CheckInEngine, period: str, *, job: str, now: Optional[datetime] = None
) -> JobResult:
    now_ = ensure_aware(now or utcnow())
    result = JobResult(job)
    users = [u for u in await engine.users.list_active_users() if u.email_summaries]
    result.scanned = len(users)
    for user in users:
        try:
            analytics = await checkin_analytics(engine.store, user.id, period, now=now_)
        except CheckInEngineError as e:
            result.failed += 1
            result.errors.append(f"{user.id}: {e.message}")
            logger.error("Could not build %s summary for user %s: %s", period, user.id, e.message)
            continue
        _count(result, await engine.dispatcher.dispatch_summary(user, period, analytics, now=now_))

    logger.info("Sent %d %sly progress summaries (%d failed)", result.sent, period, result.failed)
    return result


async def send_weekly_summaries(engine: CheckInEngine, *, now: Optional[datetime] = None) -> JobResult:
    return await send_progress_summaries(engine, "week", job=WEEKLY_SUMMARIES, now=now)


async def send_monthly_summaries(engine: CheckInEngine, *, now: Optional[datetime] = None) -> JobResult:
    return await send_progress_summaries(engine, "month", job=MONTHLY_SUMMARIES, now=now)


async def cleanup_stale_checkins(engine: CheckInEngine, *, now: Optional[datetime] = None) -> JobResult:
    now_ = ensure_aware(now or utcnow())
    result = JobResult(CLEANUP)
    candidates = await engine.store.find(
        CheckInQuery(statuses=DUE_STATUSES, scheduled_before=now_ - engine.retention)
    )
    result.scanned = len(candidates)
    for ci in candidates:
        await _miss(engine, ci, now_, result)

    logger.info("Cleanup: %d stale check-ins marked missed", result.transitioned)
    return result


JOB_BODIES = {
    CHECKIN_REMINDERS: send_checkin_reminders,
    OVERDUE_CHECKINS: process_overdue_checkins,
    WEEKLY_SUMMARIES: send_weekly_summaries,
    MONTHLY_SUMMARIES: send_monthly_summaries,
    CLEANUP: cleanup_stale_checkins,
}


def register_default_jobs(orchestrator: JobOrchestrator, engine: CheckInEngine) -> None:
    for name, body in JOB_BODIES.items():
        schedule, description = DEFAULT_SCHEDULES[name]

        async def run(body=body) -> dict:
            return (await body(engine)).to_dict()

        orchestrator.register(name, schedule, run, description=description)
