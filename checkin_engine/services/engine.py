from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkin_engine.core.config import Settings
from checkin_engine.domain.checkin import EMAIL, IN_APP, PUSH
from checkin_engine.repositories.base import CheckInStore, GoalLookup, UserDirectory
from checkin_engine.repositories.checkin_repo import SqlAlchemyCheckInStore
from checkin_engine.repositories.goal_repo import SqlAlchemyGoalLookup
from checkin_engine.repositories.user_repo import SqlAlchemyUserDirectory
from checkin_engine.services.channels import EmailChannel, InAppChannel, PushChannel
from checkin_engine.services.notifications import NotificationDispatcher
from checkin_engine.services.checkin import TRANSITION_MAX_RETRIES


@dataclass
class CheckInEngine:
    """Everything the job bodies and routes need, wired once at startup."""

    store: CheckInStore
    goals: GoalLookup
    users: UserDirectory
    dispatcher: NotificationDispatcher
    reminder_lookahead: timedelta = field(default_factory=lambda: timedelta(hours=24))
    retention: timedelta = field(default_factory=lambda: timedelta(days=90))
    max_retries: int = TRANSITION_MAX_RETRIES


def build_checkin_engine(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> CheckInEngine:
    store = SqlAlchemyCheckInStore(session_factory)
    goals = SqlAlchemyGoalLookup(session_factory)
    users = SqlAlchemyUserDirectory(session_factory)
    channels = {
        EMAIL: EmailChannel(
            settings.EMAIL_API_URL,
            settings.EMAIL_API_KEY,
            settings.EMAIL_FROM,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        ),
        PUSH: PushChannel(),
        IN_APP: InAppChannel(),
    }
    return CheckInEngine(
        store=store,
        goals=goals,
        users=users,
        dispatcher=NotificationDispatcher(channels, users, goals),
        reminder_lookahead=timedelta(hours=settings.REMINDER_LOOKAHEAD_HOURS),
        retention=timedelta(days=settings.CLEANUP_RETENTION_DAYS),
        max_retries=settings.TRANSITION_MAX_RETRIES,
    )
