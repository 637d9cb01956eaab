from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional
from uuid import UUID

from checkin_engine.core.errors import CheckInNotFound, ConcurrentUpdateError, GoalNotFound, ValidationError
from checkin_engine.domain.checkin import CHECKIN_TYPES, DUE_STATUSES, CheckIn, ReminderSettings
from checkin_engine.repositories.base import CheckInQuery, CheckInStore, GoalLookup, GoalRef
from checkin_engine.services.notifications import NotificationDispatcher, NotificationOutcome
from checkin_engine.services.recurrence import WEEKLY, CustomFrequency, validate_frequency
from checkin_engine.services.series import generate_series
from checkin_engine.utils.time import ensure_aware, utcnow

logger = logging.getLogger(__name__)

TRANSITION_MAX_RETRIES = 3
DEFAULT_UPCOMING_LIMIT = 10


@dataclass(slots=True)
class CompletionResult:
    checkin: CheckIn
    notifications: list[NotificationOutcome] = field(default_factory=list)


async def _owned_goal(goals: GoalLookup, goal_id: UUID, user_id: UUID) -> GoalRef:
    goal = await goals.get_goal(goal_id)
    if goal is None or goal.user_id != user_id:
        raise GoalNotFound(f"Goal {goal_id} not found or access denied")
    return goal


async def get_checkin(store: CheckInStore, checkin_id: UUID, *, user_id: Optional[UUID] = None) -> CheckIn:
    """
    Load a check-in; with `user_id` it must also belong to that user.
    """
    ci = await store.get(checkin_id)
    if ci is None or (user_id is not None and ci.user_id != user_id):
        raise CheckInNotFound(f"Check-in {checkin_id} not found")
    return ci


async def create_checkin(
    store: CheckInStore,
    goals: GoalLookup,
    *,
    user_id: UUID,
    goal_id: UUID,
    frequency: str = WEEKLY,
    scheduled_date: Optional[datetime] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    type: str = "goal",
    custom: Optional[CustomFrequency] = None,
    journey_id: Optional[UUID] = None,
    is_recurring: bool = True,
    recurrence_end_date: Optional[datetime] = None,
    reminder_settings: Optional[ReminderSettings] = None,
    now: Optional[datetime] = None,
) -> CheckIn:
    """
    Create a single scheduled check-in.
    - Title defaults to "Check-in for <goal title>".
    - Scheduled date defaults to now.
    - Recurring check-ins get their next occurrence precomputed.
    """
    validate_frequency(frequency, custom)
    if type not in CHECKIN_TYPES:
        raise ValidationError(f"Invalid check-in type '{type}'")
    goal = await _owned_goal(goals, goal_id, user_id)

    when = ensure_aware(scheduled_date or now or utcnow())
    end = ensure_aware(recurrence_end_date) if recurrence_end_date is not None else None
    if end is not None and end < when:
        raise ValidationError("Recurrence end date precedes the scheduled date")

    ci = CheckIn(
        user_id=user_id,
        goal_id=goal_id,
        journey_id=journey_id,
        title=title or f"Check-in for {goal.title}",
        description=description,
        type=type,
        frequency=frequency,
        custom_frequency=custom,
        scheduled_date=when,
        is_recurring=is_recurring,
        recurrence_end_date=end,
        reminder_settings=reminder_settings or ReminderSettings(),
    )
    await store.add(ci)
    logger.info("Created check-in %s for goal %s", ci.id, goal_id)
    return ci


async def create_recurring_series(
    store: CheckInStore,
    goals: GoalLookup,
    *,
    user_id: UUID,
    goal_id: UUID,
    frequency: str,
    start_date: datetime,
    end_date: Optional[datetime] = None,
    reminder_settings: Optional[ReminderSettings] = None,
    custom: Optional[CustomFrequency] = None,
    journey_id: Optional[UUID] = None,
) -> list[CheckIn]:
    await _owned_goal(goals, goal_id, user_id)
    return await generate_series(
        store,
        goals,
        goal_id=goal_id,
        user_id=user_id,
        frequency=frequency,
        start_date=start_date,
        end_date=end_date,
        reminder_settings=reminder_settings,
        custom=custom,
        journey_id=journey_id,
    )


async def _transition(
    store: CheckInStore,
    checkin_id: UUID,
    apply: Callable[[CheckIn], None],
    *,
    user_id: Optional[UUID],
    max_retries: int,
) -> CheckIn:
    """
    Read, transition, and write back only if nobody changed the status in
    between. On conflict the row is re-read, so the transition is validated
    again against the winner's state.
    """
    attempt = 1
    while True:
        ci = await get_checkin(store, checkin_id, user_id=user_id)
        previous = ci.status
        apply(ci)
        try:
            return await store.save(ci, expected_status=previous)
        except ConcurrentUpdateError:
            if attempt >= max_retries:
                raise
            logger.info("Check-in %s changed concurrently, retrying (%d/%d)", checkin_id, attempt, max_retries)
            attempt += 1


async def complete_checkin(
    store: CheckInStore,
    checkin_id: UUID,
    *,
    user_id: Optional[UUID] = None,
    assessment: Optional[dict[str, Any]] = None,
    responses: Optional[list[dict[str, Any]]] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
    max_retries: int = TRANSITION_MAX_RETRIES,
) -> CompletionResult:
    """
    Complete a check-in, then send the completion confirmation when a
    dispatcher is given. Confirmation failures never undo the completion.
    """
    now_ = ensure_aware(now or utcnow())
    ci = await _transition(
        store,
        checkin_id,
        lambda c: c.complete(assessment, responses=responses, now=now_),
        user_id=user_id,
        max_retries=max_retries,
    )
    logger.info("Completed check-in %s (next: %s)", ci.id, ci.next_scheduled_date)

    outcomes: list[NotificationOutcome] = []
    if dispatcher is not None:
        outcomes = await dispatcher.dispatch_completion(ci, now=now_)
    return CompletionResult(checkin=ci, notifications=outcomes)


async def miss_checkin(
    store: CheckInStore,
    checkin_id: UUID,
    *,
    user_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
    max_retries: int = TRANSITION_MAX_RETRIES,
) -> CheckIn:
    ci = await _transition(store, checkin_id, lambda c: c.miss(now=now), user_id=user_id, max_retries=max_retries)
    logger.info("Marked check-in %s as missed", ci.id)
    return ci


async def reschedule_checkin(
    store: CheckInStore,
    checkin_id: UUID,
    new_date: datetime,
    *,
    user_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
    max_retries: int = TRANSITION_MAX_RETRIES,
) -> CheckIn:
    ci = await _transition(
        store, checkin_id, lambda c: c.reschedule(new_date, now=now), user_id=user_id, max_retries=max_retries
    )
    logger.info("Rescheduled check-in %s to %s", ci.id, ci.scheduled_date.isoformat())
    return ci


async def get_upcoming(
    store: CheckInStore, user_id: UUID, limit: int = DEFAULT_UPCOMING_LIMIT, *, now: Optional[datetime] = None
) -> list[CheckIn]:
    return await store.find(
        CheckInQuery(
            user_id=user_id,
            statuses=DUE_STATUSES,
            scheduled_from=ensure_aware(now or utcnow()),
            limit=limit,
        )
    )


async def get_overdue(store: CheckInStore, user_id: UUID, *, now: Optional[datetime] = None) -> list[CheckIn]:
    return await store.find(
        CheckInQuery(user_id=user_id, statuses=DUE_STATUSES, scheduled_before=ensure_aware(now or utcnow()))
    )


async def get_by_date_range(store: CheckInStore, user_id: UUID, start: datetime, end: datetime) -> list[CheckIn]:
    start_, end_ = ensure_aware(start), ensure_aware(end)
    if end_ < start_:
        raise ValidationError("End date precedes start date")
    return await store.find(CheckInQuery(user_id=user_id, scheduled_from=start_, scheduled_to=end_))
