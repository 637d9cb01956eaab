"""
Bounded materialisation of a recurring check-in series.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from checkin_engine.core.errors import GoalNotFound, ValidationError
from checkin_engine.domain.checkin import CheckIn, ReminderSettings
from checkin_engine.repositories.base import CheckInStore, GoalLookup
from checkin_engine.services.recurrence import CustomFrequency, calculate_next_date, validate_frequency
from checkin_engine.utils.time import ensure_aware

logger = logging.getLogger(__name__)

MAX_SERIES_INSTANCES = 50
DEFAULT_SERIES_SPAN = timedelta(days=365)


def plan_series(
    start_date: datetime,
    frequency: str,
    end_date: Optional[datetime] = None,
    custom: Optional[CustomFrequency] = None,
    *,
    max_instances: int = MAX_SERIES_INSTANCES,
) -> list[datetime]:
    """
    Occurrence dates from `start_date` until the cursor passes `end_date`
    (default start + 365 days) or `max_instances` dates were produced.
    """
    validate_frequency(frequency, custom)
    start = ensure_aware(start_date)
    end = ensure_aware(end_date) if end_date is not None else start + DEFAULT_SERIES_SPAN
    if end < start:
        raise ValidationError(
            "Recurrence end date precedes the start date",
            detail=f"start={start.isoformat()} end={end.isoformat()}",
        )

    dates: list[datetime] = []
    cursor = start
    while cursor <= end and len(dates) < max_instances:
        dates.append(cursor)
        cursor = calculate_next_date(cursor, frequency, custom)
    return dates


async def generate_series(
    store: CheckInStore,
    goals: GoalLookup,
    *,
    goal_id: UUID,
    user_id: UUID,
    frequency: str,
    start_date: datetime,
    end_date: Optional[datetime] = None,
    reminder_settings: Optional[ReminderSettings] = None,
    custom: Optional[CustomFrequency] = None,
    journey_id: Optional[UUID] = None,
) -> list[CheckIn]:
    """
    Create and persist one scheduled CheckIn per planned occurrence.
    Callers needing more than MAX_SERIES_INSTANCES re-invoke once the
    window has advanced.
    """
    goal = await goals.get_goal(goal_id)
    if goal is None:
        raise GoalNotFound(f"Goal {goal_id} not found")

    recurrence_end = ensure_aware(end_date) if end_date is not None else None
    dates = plan_series(start_date, frequency, recurrence_end, custom)
    settings_ = reminder_settings or ReminderSettings()

    checkins = [
        CheckIn(
            user_id=user_id,
            goal_id=goal_id,
            journey_id=journey_id,
            title=f"{goal.title} - {frequency} Check-in",
            description=f"Regular {frequency} check-in for goal progress tracking",
            type="goal",
            frequency=frequency,
            custom_frequency=custom,
            scheduled_date=when,
            reminder_settings=ReminderSettings(
                enabled=settings_.enabled,
                advance_time=settings_.advance_time,
                methods=tuple(settings_.methods),
            ),
            is_recurring=True,
            recurrence_end_date=recurrence_end,
        )
        for when in dates
    ]
    await store.add_all(checkins)
    logger.info("Generated %d %s check-ins for goal %s", len(checkins), frequency, goal_id)
    return checkins
