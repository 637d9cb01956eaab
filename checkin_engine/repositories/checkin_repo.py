from __future__ import annotations

import logging
from typing import Any, Optional, Sequence
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkin_engine.core.errors import ConcurrentUpdateError, StoreFailure
from checkin_engine.db.models import CheckInRow
from checkin_engine.domain.checkin import CheckIn, ReminderSettings
from checkin_engine.repositories.base import CheckInQuery
from checkin_engine.services.recurrence import CustomFrequency
from checkin_engine.utils.time import ensure_aware

logger = logging.getLogger(__name__)


def _aware(value):
    # SQLite hands back naive datetimes even for timezone=True columns
    return ensure_aware(value) if value is not None else None


def to_entity(row: CheckInRow) -> CheckIn:
    custom = None
    if row.custom_days is not None or row.custom_hours is not None:
        custom = CustomFrequency(days=row.custom_days or 0, hours=row.custom_hours or 0)
    return CheckIn(
        id=row.id,
        user_id=row.user_id,
        goal_id=row.goal_id,
        journey_id=row.journey_id,
        title=row.title,
        description=row.description,
        type=row.type,
        status=row.status,
        frequency=row.frequency,
        custom_frequency=custom,
        scheduled_date=_aware(row.scheduled_date),
        completed_date=_aware(row.completed_date),
        next_scheduled_date=_aware(row.next_scheduled_date),
        is_recurring=row.is_recurring,
        recurrence_end_date=_aware(row.recurrence_end_date),
        is_active=row.is_active,
        reminder_settings=ReminderSettings(
            enabled=row.reminder_enabled,
            advance_time=row.reminder_advance_minutes,
            methods=tuple(row.reminder_methods or ()),
        ),
        progress_assessment=dict(row.progress_assessment or {}),
        responses=list(row.responses or []),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def to_row_values(ci: CheckIn) -> dict[str, Any]:
    custom = ci.custom_frequency
    return {
        "id": ci.id,
        "user_id": ci.user_id,
        "goal_id": ci.goal_id,
        "journey_id": ci.journey_id,
        "title": ci.title,
        "description": ci.description,
        "type": ci.type,
        "status": ci.status,
        "frequency": ci.frequency,
        "custom_days": custom.days if custom else None,
        "custom_hours": custom.hours if custom else None,
        "scheduled_date": ci.scheduled_date,
        "completed_date": ci.completed_date,
        "next_scheduled_date": ci.next_scheduled_date,
        "is_recurring": ci.is_recurring,
        "recurrence_end_date": ci.recurrence_end_date,
        "is_active": ci.is_active,
        "reminder_enabled": ci.reminder_settings.enabled,
        "reminder_advance_minutes": ci.reminder_settings.advance_time,
        "reminder_methods": list(ci.reminder_settings.methods),
        "progress_assessment": dict(ci.progress_assessment),
        "responses": list(ci.responses),
        "created_at": ci.created_at,
        "updated_at": ci.updated_at,
    }


def _apply_query(stmt: Select, query: CheckInQuery) -> Select:
    if query.user_id is not None:
        stmt = stmt.where(CheckInRow.user_id == query.user_id)
    if query.goal_id is not None:
        stmt = stmt.where(CheckInRow.goal_id == query.goal_id)
    if query.statuses:
        stmt = stmt.where(CheckInRow.status.in_(query.statuses))
    if query.scheduled_from is not None:
        stmt = stmt.where(CheckInRow.scheduled_date >= query.scheduled_from)
    if query.scheduled_to is not None:
        stmt = stmt.where(CheckInRow.scheduled_date <= query.scheduled_to)
    if query.scheduled_before is not None:
        stmt = stmt.where(CheckInRow.scheduled_date < query.scheduled_before)
    if query.reminders_enabled is not None:
        stmt = stmt.where(CheckInRow.reminder_enabled == query.reminders_enabled)
    return stmt


class SqlAlchemyCheckInStore:
    """
    CheckInStore backed by SQLAlchemy. Every call runs in its own session so
    the store is safe to share between concurrently running jobs.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find(self, query: CheckInQuery) -> list[CheckIn]:
        stmt = _apply_query(select(CheckInRow), query)
        order = CheckInRow.scheduled_date.desc() if query.order_desc else CheckInRow.scheduled_date.asc()
        stmt = stmt.order_by(order)
        if query.limit is not None:
            stmt = stmt.limit(query.limit)
        try:
            async with self._session_factory() as session:
                res = await session.execute(stmt)
                return [to_entity(row) for row in res.scalars()]
        except SQLAlchemyError as e:
            raise StoreFailure("Failed to query check-ins", detail=str(e)) from e

    async def get(self, checkin_id: UUID) -> Optional[CheckIn]:
        try:
            async with self._session_factory() as session:
                row = await session.get(CheckInRow, checkin_id)
                return to_entity(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to load check-in {checkin_id}", detail=str(e)) from e

    async def add(self, checkin: CheckIn) -> CheckIn:
        await self.add_all([checkin])
        return checkin

    async def add_all(self, checkins: Sequence[CheckIn]) -> list[CheckIn]:
        try:
            async with self._session_factory() as session:
                session.add_all([CheckInRow(**to_row_values(ci)) for ci in checkins])
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreFailure("Failed to insert check-ins", detail=str(e)) from e
        return list(checkins)

    async def save(self, checkin: CheckIn, *, expected_status: Optional[str] = None) -> CheckIn:
        values = to_row_values(checkin)
        try:
            async with self._session_factory() as session:
                if expected_status is None:
                    await session.merge(CheckInRow(**values))
                else:
                    # Compare-and-set on status: a concurrent transition wins, we lose
                    values.pop("id")
                    res = await session.execute(
                        update(CheckInRow)
                        .where(CheckInRow.id == checkin.id, CheckInRow.status == expected_status)
                        .values(**values)
                    )
                    if res.rowcount == 0:
                        await session.rollback()
                        raise ConcurrentUpdateError(
                            f"Check-in {checkin.id} is no longer '{expected_status}'"
                        )
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to save check-in {checkin.id}", detail=str(e)) from e
        return checkin

    async def count(self, query: CheckInQuery) -> int:
        stmt = _apply_query(select(func.count()).select_from(CheckInRow), query)
        try:
            async with self._session_factory() as session:
                res = await session.execute(stmt)
                return int(res.scalar_one())
        except SQLAlchemyError as e:
            raise StoreFailure("Failed to count check-ins", detail=str(e)) from e
