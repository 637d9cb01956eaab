"""
Reminder, overdue, completion and summary dispatch.

Each dispatch_* method attempts one send per channel and returns one
NotificationOutcome per attempt. Nothing raises past these methods: a
broken channel, an unknown method or a failed recipient lookup becomes a
`failed` outcome and a log line, and the remaining channels still run.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence
from uuid import UUID

from checkin_engine.domain.checkin import EMAIL, CheckIn
from checkin_engine.repositories.base import GoalLookup, UserDirectory, UserRef
from checkin_engine.services.channels import Channel, NotificationPayload
from checkin_engine.services.dispatch_guard import DispatchGuard
from checkin_engine.utils.time import add_minutes, ensure_aware, humanize_delta, utcnow, whole_hours_between

logger = logging.getLogger(__name__)

SENT = "sent"
FAILED = "failed"

REMINDER = "reminder"
OVERDUE = "overdue"
COMPLETION = "completion"
SUMMARY = "summary"

OVERDUE_MARKER_MINUTES = 6 * 60


@dataclass(slots=True)
class NotificationOutcome:
    channel: str
    recipient: Optional[str]
    kind: str
    status: str
    sent_at: datetime
    checkin_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SENT


@dataclass(slots=True)
class _Context:
    user: Optional[UserRef]
    goal_title: str


def reminder_window_open(checkin: CheckIn, now: datetime) -> bool:
    """
    True when `now` lies in [scheduled_date - advance_time, scheduled_date].
    """
    return checkin.reminder_opens_at() <= now <= checkin.scheduled_date


def is_reminder_eligible(checkin: CheckIn, now: Optional[datetime] = None) -> bool:
    if not checkin.is_due or not checkin.reminder_settings.enabled:
        return False
    return reminder_window_open(checkin, ensure_aware(now or utcnow()))


def is_overdue_eligible(checkin: CheckIn, now: Optional[datetime] = None) -> bool:
    return checkin.is_due and checkin.scheduled_date < ensure_aware(now or utcnow())


class NotificationDispatcher:
    def __init__(
        self,
        channels: Mapping[str, Channel],
        users: UserDirectory,
        goals: GoalLookup,
        *,
        guard: Optional[DispatchGuard] = None,
    ):
        self.channels = dict(channels)
        self.users = users
        self.goals = goals
        self.guard = guard or DispatchGuard()

    # -- public ----------------------------------------------------------

    async def dispatch_reminder(self, checkin: CheckIn, *, now: Optional[datetime] = None) -> list[NotificationOutcome]:
        now_ = ensure_aware(now or utcnow())
        if not is_reminder_eligible(checkin, now_):
            return []

        methods = checkin.reminder_settings.methods
        if not methods:
            logger.info("Check-in %s has no reminder methods configured", checkin.id)
            return []

        key = (checkin.id, REMINDER, checkin.scheduled_date)
        if not self.guard.claim(key, until=checkin.scheduled_date, now=now_):
            logger.info("Reminder for check-in %s already dispatched in this window", checkin.id)
            return []

        outcomes = await self._dispatch(checkin, REMINDER, methods, now_, self._reminder_payload)
        if outcomes and not any(o.ok for o in outcomes):
            # nothing got through; let the next tick try again
            self.guard.release(key)
        return outcomes

    async def dispatch_overdue(self, checkin: CheckIn, *, now: Optional[datetime] = None) -> list[NotificationOutcome]:
        now_ = ensure_aware(now or utcnow())
        if not is_overdue_eligible(checkin, now_):
            return []

        key = (checkin.id, OVERDUE, checkin.scheduled_date)
        if not self.guard.claim(key, until=add_minutes(now_, OVERDUE_MARKER_MINUTES), now=now_):
            logger.info("Overdue notice for check-in %s already dispatched", checkin.id)
            return []

        # overdue alerts always go out by email, whatever the reminder methods are
        outcomes = await self._dispatch(checkin, OVERDUE, (EMAIL,), now_, self._overdue_payload)
        if outcomes and not any(o.ok for o in outcomes):
            self.guard.release(key)
        return outcomes

    async def dispatch_completion(self, checkin: CheckIn, *, now: Optional[datetime] = None) -> list[NotificationOutcome]:
        now_ = ensure_aware(now or utcnow())
        return await self._dispatch(checkin, COMPLETION, (EMAIL,), now_, self._completion_payload)

    async def dispatch_summary(
        self,
        user: UserRef,
        period: str,
        analytics: Mapping[str, Any],
        *,
        now: Optional[datetime] = None,
    ) -> list[NotificationOutcome]:
        now_ = ensure_aware(now or utcnow())
        payload = NotificationPayload(
            kind=SUMMARY,
            subject=f"Your {period.capitalize()}ly Progress Summary",
            body=(
                f"{analytics.get('completed', 0)} of {analytics.get('total', 0)} check-ins completed "
                f"({analytics.get('completion_rate', 0)}%) this {period}."
            ),
            template="progressSummary",
            data={"first_name": user.first_name, "time_range": period, **dict(analytics)},
        )
        outcome = await self._attempt(EMAIL, user.email, payload, now_, checkin_id=None, user_id=user.id)
        return [outcome]

    # -- internals -------------------------------------------------------

    async def _dispatch(self, checkin: CheckIn, kind: str, methods: Sequence[str], now: datetime,
                        build_payload) -> list[NotificationOutcome]:
        try:
            ctx = await self._context(checkin)
        except Exception as e:
            logger.error("Could not resolve recipient for %s on check-in %s: %s", kind, checkin.id, e)
            return [self._failed(m, None, kind, now, checkin, f"recipient lookup failed: {e}") for m in methods]

        if ctx.user is None:
            logger.error("User %s not found for %s on check-in %s", checkin.user_id, kind, checkin.id)
            return [self._failed(m, None, kind, now, checkin, "user not found") for m in methods]

        payload = build_payload(checkin, ctx, now)
        attempts = [
            self._attempt(m, self._recipient_for(m, ctx.user), payload, now,
                          checkin_id=checkin.id, user_id=checkin.user_id)
            for m in methods
        ]
        outcomes = list(await asyncio.gather(*attempts))
        failed = [o for o in outcomes if not o.ok]
        logger.info("Dispatched %s for check-in %s: %d sent, %d failed",
                    kind, checkin.id, len(outcomes) - len(failed), len(failed))
        return outcomes

    async def _attempt(self, method: str, recipient: Optional[str], payload: NotificationPayload,
                       now: datetime, *, checkin_id: Optional[UUID], user_id: Optional[UUID]) -> NotificationOutcome:
        outcome = NotificationOutcome(channel=method, recipient=recipient, kind=payload.kind, status=SENT,
                                      sent_at=now, checkin_id=checkin_id, user_id=user_id)
        channel = self.channels.get(method)
        if channel is None:
            outcome.status, outcome.error = FAILED, f"no channel configured for '{method}'"
        elif not recipient:
            outcome.status, outcome.error = FAILED, f"no {method} recipient"
        else:
            try:
                await channel.send(recipient, payload)
            except Exception as e:
                outcome.status, outcome.error = FAILED, str(e)

        if not outcome.ok:
            logger.warning("%s via %s failed for %s: %s",
                           payload.kind, method, checkin_id or user_id, outcome.error)
        return outcome

    async def _context(self, checkin: CheckIn) -> _Context:
        user = await self.users.get_user(checkin.user_id)
        goal = await self.goals.get_goal(checkin.goal_id)
        return _Context(user=user, goal_title=goal.title if goal else checkin.title)

    @staticmethod
    def _recipient_for(method: str, user: UserRef) -> Optional[str]:
        if method == EMAIL:
            return user.email
        return str(user.id)

    @staticmethod
    def _failed(method: str, recipient: Optional[str], kind: str, now: datetime,
                checkin: CheckIn, error: str) -> NotificationOutcome:
        return NotificationOutcome(channel=method, recipient=recipient, kind=kind, status=FAILED, sent_at=now,
                                   checkin_id=checkin.id, user_id=checkin.user_id, error=error)

    # -- payloads --------------------------------------------------------

    @staticmethod
    def _base_data(checkin: CheckIn, ctx: _Context) -> dict[str, Any]:
        return {
            "checkin_id": str(checkin.id),
            "goal_id": str(checkin.goal_id),
            "goal_title": ctx.goal_title,
            "first_name": ctx.user.first_name if ctx.user else None,
            "frequency": checkin.frequency,
            "scheduled_time": checkin.scheduled_date.isoformat(),
        }

    def _reminder_payload(self, checkin: CheckIn, ctx: _Context, now: datetime) -> NotificationPayload:
        data = self._base_data(checkin, ctx)
        data["description"] = checkin.description or f"Regular {checkin.frequency} check-in for your goal progress"
        return NotificationPayload(
            kind=REMINDER,
            subject=f"Check-in Reminder: {ctx.goal_title}",
            body=f"It's time for your {checkin.frequency} check-in!",
            template="checkinReminder",
            data=data,
        )

    def _overdue_payload(self, checkin: CheckIn, ctx: _Context, now: datetime) -> NotificationPayload:
        data = self._base_data(checkin, ctx)
        seconds = int((now - checkin.scheduled_date).total_seconds())
        data["overdue_hours"] = whole_hours_between(checkin.scheduled_date, now)
        data["overdue_for"] = humanize_delta(seconds)
        return NotificationPayload(
            kind=OVERDUE,
            subject=f"Overdue Check-in: {ctx.goal_title}",
            body=f"Your {checkin.frequency} check-in is overdue by {data['overdue_for']}.",
            template="overdueCheckin",
            data=data,
        )

    def _completion_payload(self, checkin: CheckIn, ctx: _Context, now: datetime) -> NotificationPayload:
        data = self._base_data(checkin, ctx)
        data["completed_time"] = checkin.completed_date.isoformat() if checkin.completed_date else None
        data["next_checkin"] = checkin.next_scheduled_date.isoformat() if checkin.next_scheduled_date else None
        data["progress"] = checkin.progress_assessment.get("overallProgress", 0)
        data["rating"] = checkin.progress_assessment.get("rating", 0)
        body = "Thanks for checking in!"
        if data["next_checkin"]:
            body += f" Your next check-in is on {checkin.next_scheduled_date:%Y-%m-%d %H:%M} UTC."
        return NotificationPayload(
            kind=COMPLETION,
            subject=f"Check-in Completed: {ctx.goal_title}",
            body=body,
            template="checkinCompleted",
            data=data,
        )
