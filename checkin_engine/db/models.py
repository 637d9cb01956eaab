from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Uuid, func
import uuid
from datetime import datetime
from typing import Any, Optional, List

from checkin_engine.domain.checkin import CHECKIN_TYPES, STATUSES
from checkin_engine.services.recurrence import FREQUENCIES

checkin_status_enum = Enum(*STATUSES, name="checkin_status", native_enum=False, length=20)

checkin_frequency_enum = Enum(*FREQUENCIES, name="checkin_frequency", native_enum=False, length=20)

checkin_type_enum = Enum(*CHECKIN_TYPES, name="checkin_type", native_enum=False, length=20)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # opt-in for weekly / monthly progress summaries
    email_summaries: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    goals: Mapped[List["Goal"]] = relationship(back_populates="user", cascade="all, delete")


class Goal(Base):
    __tablename__ = "goals"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user: Mapped["User"] = relationship(back_populates="goals")
    title: Mapped[str] = mapped_column(String(200))
    category: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    checkins: Mapped[List["CheckInRow"]] = relationship(back_populates="goal", cascade="all, delete")


class CheckInRow(Base):
    __tablename__ = "checkins"
    __table_args__ = (
        Index("ix_checkins_user_scheduled", "user_id", "scheduled_date"),
        Index("ix_checkins_user_status", "user_id", "status"),
        Index("ix_checkins_scheduled_status", "scheduled_date", "status"),
        Index("ix_checkins_next_status", "next_scheduled_date", "status"),
    )
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    goal_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("goals.id", ondelete="CASCADE"), nullable=False)
    goal: Mapped["Goal"] = relationship(back_populates="checkins")
    journey_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(String(1000))
    type: Mapped[str] = mapped_column(checkin_type_enum, default="goal")
    status: Mapped[str] = mapped_column(checkin_status_enum, default="scheduled")
    frequency: Mapped[str] = mapped_column(checkin_frequency_enum, default="weekly")
    custom_days: Mapped[Optional[int]] = mapped_column(Integer)
    custom_hours: Mapped[Optional[int]] = mapped_column(Integer)
    scheduled_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    next_scheduled_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=True)
    recurrence_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    reminder_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    reminder_advance_minutes: Mapped[int] = mapped_column(Integer, default=60)
    reminder_methods: Mapped[list[str]] = mapped_column(JSON, default=list)
    progress_assessment: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    responses: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
