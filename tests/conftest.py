"""
Pytest configuration and shared fixtures for all tests.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport

from checkin_engine.domain.checkin import EMAIL, IN_APP, PUSH, CheckIn, ReminderSettings
from checkin_engine.main import create_app
from checkin_engine.repositories.base import GoalRef, UserRef
from checkin_engine.services.engine import CheckInEngine
from checkin_engine.services.jobs import JobOrchestrator
from checkin_engine.services.notifications import NotificationDispatcher
from tests.fakes import FakeGoals, FakeUsers, InMemoryCheckInStore, RecordingChannel


@pytest.fixture
def test_user_id() -> uuid.UUID:
    """Same id the dev auth bypass resolves to."""
    return uuid.UUID("123e4567-e89b-12d3-a456-426614174000")


@pytest.fixture
def another_user_id() -> uuid.UUID:
    """Generate another test user ID for multi-user tests."""
    return uuid.UUID("223e4567-e89b-12d3-a456-426614174001")


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 1, 10, 8, 15, tzinfo=timezone.utc)


@pytest.fixture
def user(test_user_id) -> UserRef:
    return UserRef(id=test_user_id, email="test@example.com", first_name="Test")


@pytest.fixture
def goal(test_user_id) -> GoalRef:
    return GoalRef(id=uuid.UUID("323e4567-e89b-12d3-a456-426614174002"), user_id=test_user_id, title="Run a marathon")


@pytest.fixture
def make_checkin(test_user_id, goal):
    """Factory for check-ins owned by the test user on the test goal."""

    def _make(scheduled_date: datetime, **kwargs) -> CheckIn:
        kwargs.setdefault("title", "Weekly check-in")
        return CheckIn(user_id=test_user_id, goal_id=goal.id, scheduled_date=scheduled_date, **kwargs)

    return _make


@pytest.fixture
def store() -> InMemoryCheckInStore:
    return InMemoryCheckInStore()


@pytest.fixture
def goals(goal) -> FakeGoals:
    return FakeGoals([goal])


@pytest.fixture
def users(user) -> FakeUsers:
    return FakeUsers([user])


@pytest.fixture
def channels() -> dict:
    return {EMAIL: RecordingChannel(EMAIL), PUSH: RecordingChannel(PUSH), IN_APP: RecordingChannel(IN_APP)}


@pytest.fixture
def dispatcher(channels, users, goals) -> NotificationDispatcher:
    return NotificationDispatcher(channels, users, goals)


@pytest.fixture
def engine(store, goals, users, dispatcher) -> CheckInEngine:
    return CheckInEngine(store=store, goals=goals, users=users, dispatcher=dispatcher)


@pytest.fixture
def all_channels_reminder() -> ReminderSettings:
    return ReminderSettings(enabled=True, advance_time=60, methods=(EMAIL, PUSH, IN_APP))


@pytest.fixture
def orchestrator() -> JobOrchestrator:
    return JobOrchestrator()


@pytest.fixture
async def client(engine, orchestrator) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client over the in-memory engine. ASGITransport does not run the
    lifespan, so the scheduler never starts here.
    """
    app = create_app(engine=engine, orchestrator=orchestrator)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def utc_now():
    """Get current UTC time."""
    return datetime.now(timezone.utc)


@pytest.fixture
def in_an_hour(utc_now):
    return utc_now + timedelta(hours=1)
