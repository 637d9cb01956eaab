"""
The CheckIn entity and its lifecycle.

complete(), miss() and reschedule() are the only mutators of `status`.
Next occurrences are always anchored on `scheduled_date`, never on the
moment the user responded, so a late answer does not shift the cadence.
"""
from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from checkin_engine.core.errors import AlreadyCompleted, CompletedCheckIn, InvalidTransitionError
from checkin_engine.services.recurrence import WEEKLY, CustomFrequency, next_occurrence
from checkin_engine.utils.time import add_minutes, ensure_aware, utcnow

SCHEDULED = "scheduled"
PENDING = "pending"
COMPLETED = "completed"
MISSED = "missed"
CANCELLED = "cancelled"

STATUSES = (SCHEDULED, PENDING, COMPLETED, MISSED, CANCELLED)
DUE_STATUSES = (SCHEDULED, PENDING)

EMAIL = "email"
PUSH = "push"
IN_APP = "in-app"
REMINDER_METHODS = (EMAIL, PUSH, IN_APP)

CHECKIN_TYPES = ("goal", "journey", "milestone", "general")

DEFAULT_ADVANCE_MINUTES = 60


@dataclass(slots=True)
class ReminderSettings:
    enabled: bool = True
    advance_time: int = DEFAULT_ADVANCE_MINUTES  # minutes before scheduled_date
    methods: tuple[str, ...] = (EMAIL,)

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "advance_time": self.advance_time, "methods": list(self.methods)}


@dataclass(slots=True)
class CheckIn:
    user_id: uuid.UUID
    goal_id: uuid.UUID
    scheduled_date: datetime
    title: str
    frequency: str = WEEKLY
    custom_frequency: Optional[CustomFrequency] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    journey_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    type: str = "goal"
    status: str = SCHEDULED
    completed_date: Optional[datetime] = None
    next_scheduled_date: Optional[datetime] = None
    is_recurring: bool = True
    recurrence_end_date: Optional[datetime] = None
    is_active: bool = True
    reminder_settings: ReminderSettings = field(default_factory=ReminderSettings)
    progress_assessment: dict[str, Any] = field(default_factory=dict)
    responses: list[dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.scheduled_date = ensure_aware(self.scheduled_date)
        if self.is_recurring and self.next_scheduled_date is None and self.status in DUE_STATUSES:
            self.next_scheduled_date = self.compute_next_scheduled_date()

    # -- queries ---------------------------------------------------------

    @property
    def is_due(self) -> bool:
        """Scheduled and pending both count as still awaiting an answer."""
        return self.status in DUE_STATUSES

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.status == COMPLETED:
            return False
        return ensure_aware(now or utcnow()) > self.scheduled_date

    def days_until_next(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.next_scheduled_date is None:
            return None
        delta = self.next_scheduled_date - ensure_aware(now or utcnow())
        return math.ceil(delta.total_seconds() / 86400)

    def reminder_opens_at(self) -> datetime:
        return add_minutes(self.scheduled_date, -self.reminder_settings.advance_time)

    def compute_next_scheduled_date(self) -> datetime:
        return next_occurrence(self.scheduled_date, self.frequency, self.custom_frequency)

    # -- transitions -----------------------------------------------------

    def complete(self, assessment: Optional[dict[str, Any]] = None, *,
                 responses: Optional[list[dict[str, Any]]] = None,
                 now: Optional[datetime] = None) -> None:
        if self.status == COMPLETED:
            raise AlreadyCompleted(f"Check-in {self.id} is already completed")
        self._require_due("complete")

        now_ = ensure_aware(now or utcnow())
        self.status = COMPLETED
        self.completed_date = now_
        if assessment:
            self.progress_assessment = {**self.progress_assessment, **assessment}
        if responses:
            self.responses = list(responses)
        if self.is_recurring:
            self.next_scheduled_date = self.compute_next_scheduled_date()
        self.updated_at = now_

    def miss(self, *, now: Optional[datetime] = None) -> None:
        if self.status == COMPLETED:
            raise AlreadyCompleted(f"Check-in {self.id} is already completed")
        self._require_due("miss")

        self.status = MISSED
        if self.is_recurring:
            self.next_scheduled_date = self.compute_next_scheduled_date()
        self.updated_at = ensure_aware(now or utcnow())

    def reschedule(self, new_date: datetime, *, now: Optional[datetime] = None) -> None:
        if self.status == COMPLETED:
            raise CompletedCheckIn(f"Check-in {self.id} is completed and cannot be rescheduled")
        if self.status == CANCELLED:
            raise InvalidTransitionError(f"Check-in {self.id} is cancelled and cannot be rescheduled")

        self.scheduled_date = ensure_aware(new_date)
        self.status = SCHEDULED
        self.next_scheduled_date = self.compute_next_scheduled_date() if self.is_recurring else None
        self.updated_at = ensure_aware(now or utcnow())

    def _require_due(self, action: str) -> None:
        if self.status not in DUE_STATUSES:
            raise InvalidTransitionError(f"Cannot {action} check-in {self.id} in status '{self.status}'")
