from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from checkin_engine.domain.checkin import CheckIn, ReminderSettings
from checkin_engine.services.recurrence import CustomFrequency


class Frequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    bi_weekly = "bi-weekly"
    monthly = "monthly"
    custom = "custom"


class ReminderMethod(str, Enum):
    email = "email"
    push = "push"
    in_app = "in-app"


class CheckinType(str, Enum):
    goal = "goal"
    journey = "journey"
    milestone = "milestone"
    general = "general"


class Mood(str, Enum):
    excellent = "excellent"
    good = "good"
    neutral = "neutral"
    poor = "poor"
    terrible = "terrible"


class CustomFrequencyIn(BaseModel):
    days: int = Field(default=0, ge=0, le=365)
    hours: int = Field(default=0, ge=0, le=23)

    def to_domain(self) -> CustomFrequency:
        return CustomFrequency(days=self.days, hours=self.hours)


class ReminderSettingsIn(BaseModel):
    enabled: bool = True
    advance_time: int = Field(default=60, ge=0, le=1440)  # minutes
    methods: list[ReminderMethod] = Field(default_factory=lambda: [ReminderMethod.email])

    def to_domain(self) -> ReminderSettings:
        return ReminderSettings(
            enabled=self.enabled,
            advance_time=self.advance_time,
            methods=tuple(m.value for m in self.methods),
        )


class CheckinCreate(BaseModel):
    goal_id: UUID
    frequency: Frequency = Frequency.weekly
    scheduled_date: Optional[datetime] = None
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    type: CheckinType = CheckinType.goal
    custom_frequency: Optional[CustomFrequencyIn] = None
    journey_id: Optional[UUID] = None
    is_recurring: bool = True
    recurrence_end_date: Optional[datetime] = None
    reminder_settings: Optional[ReminderSettingsIn] = None


class RecurringSeriesCreate(BaseModel):
    goal_id: UUID
    frequency: Frequency
    start_date: datetime
    end_date: Optional[datetime] = None
    custom_frequency: Optional[CustomFrequencyIn] = None
    journey_id: Optional[UUID] = None
    reminder_settings: Optional[ReminderSettingsIn] = None


class ProgressAssessment(BaseModel):
    """Self-assessment captured on completion; unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    overallProgress: Optional[int] = Field(default=None, ge=0, le=100)
    rating: Optional[int] = Field(default=None, ge=1, le=10)
    mood: Optional[Mood] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class CheckinResponse(BaseModel):
    question: str
    answer: Any = None


class CheckinComplete(BaseModel):
    progress_assessment: Optional[ProgressAssessment] = None
    responses: Optional[list[CheckinResponse]] = None


class CheckinReschedule(BaseModel):
    scheduled_date: datetime


class ReminderSettingsOut(BaseModel):
    enabled: bool
    advance_time: int
    methods: list[str]


class CheckinOut(BaseModel):
    id: UUID
    user_id: UUID
    goal_id: UUID
    journey_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    type: str
    status: str
    frequency: str
    custom_frequency: Optional[CustomFrequencyIn] = None
    scheduled_date: datetime
    completed_date: Optional[datetime] = None
    next_scheduled_date: Optional[datetime] = None
    is_recurring: bool
    recurrence_end_date: Optional[datetime] = None
    reminder_settings: ReminderSettingsOut
    progress_assessment: dict[str, Any] = Field(default_factory=dict)
    responses: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, ci: CheckIn) -> "CheckinOut":
        custom = None
        if ci.custom_frequency is not None:
            custom = CustomFrequencyIn(days=ci.custom_frequency.days, hours=ci.custom_frequency.hours)
        return cls(
            id=ci.id,
            user_id=ci.user_id,
            goal_id=ci.goal_id,
            journey_id=ci.journey_id,
            title=ci.title,
            description=ci.description,
            type=ci.type,
            status=ci.status,
            frequency=ci.frequency,
            custom_frequency=custom,
            scheduled_date=ci.scheduled_date,
            completed_date=ci.completed_date,
            next_scheduled_date=ci.next_scheduled_date,
            is_recurring=ci.is_recurring,
            recurrence_end_date=ci.recurrence_end_date,
            reminder_settings=ReminderSettingsOut(**ci.reminder_settings.to_dict()),
            progress_assessment=ci.progress_assessment,
            responses=ci.responses,
            created_at=ci.created_at,
            updated_at=ci.updated_at,
        )


class NotificationOutcomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    channel: str
    recipient: Optional[str] = None
    kind: str
    status: str
    sent_at: datetime
    error: Optional[str] = None


class CheckinCompleteOut(BaseModel):
    checkin: CheckinOut
    notifications: list[NotificationOutcomeOut] = Field(default_factory=list)


class CheckinAnalyticsOut(BaseModel):
    period: str
    since: datetime
    total: int
    completed: int
    missed: int
    pending: int
    completion_rate: int
    average_rating: float
    average_progress: float
    average_mood: float


class CheckinTrendOut(BaseModel):
    bucket: str
    total: int
    completed: int
    missed: int
    average_rating: Optional[float] = None
    average_progress: Optional[float] = None


class AssessmentQuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question: str
    type: str
    options: Optional[list[str]] = None
