"""
Collaborator interfaces the engine depends on.

The engine never talks to a database directly: candidates are found through
CheckInStore queries, goals through GoalLookup and notification recipients
through UserDirectory. The SQLAlchemy implementations live next to this
module; any other backend only has to satisfy these protocols.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from checkin_engine.domain.checkin import CheckIn


@dataclass(frozen=True, slots=True)
class CheckInQuery:
    """
    Filter for CheckInStore.find / count. Date bounds are inclusive unless
    `scheduled_before` is used, which is a strict upper bound.
    """
    user_id: Optional[uuid.UUID] = None
    goal_id: Optional[uuid.UUID] = None
    statuses: Optional[tuple[str, ...]] = None
    scheduled_from: Optional[datetime] = None
    scheduled_to: Optional[datetime] = None
    scheduled_before: Optional[datetime] = None
    reminders_enabled: Optional[bool] = None
    order_desc: bool = False
    limit: Optional[int] = None


@dataclass(frozen=True, slots=True)
class GoalRef:
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    category: Optional[str] = None


@dataclass(frozen=True, slots=True)
class UserRef:
    id: uuid.UUID
    email: Optional[str]
    first_name: Optional[str] = None
    is_active: bool = True
    email_summaries: bool = True


class CheckInStore(Protocol):
    async def find(self, query: CheckInQuery) -> list[CheckIn]: ...

    async def get(self, checkin_id: uuid.UUID) -> Optional[CheckIn]: ...

    async def add(self, checkin: CheckIn) -> CheckIn: ...

    async def add_all(self, checkins: Sequence[CheckIn]) -> list[CheckIn]: ...

    async def save(self, checkin: CheckIn, *, expected_status: Optional[str] = None) -> CheckIn:
        """
        Upsert. With `expected_status` the write only succeeds if the stored
        row still has that status; otherwise ConcurrentUpdateError is raised.
        """
        ...

    async def count(self, query: CheckInQuery) -> int: ...


class GoalLookup(Protocol):
    async def get_goal(self, goal_id: uuid.UUID) -> Optional[GoalRef]: ...


class UserDirectory(Protocol):
    async def get_user(self, user_id: uuid.UUID) -> Optional[UserRef]: ...

    async def list_active_users(self) -> Iterable[UserRef]: ...
