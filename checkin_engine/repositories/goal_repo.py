from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkin_engine.core.errors import StoreFailure
from checkin_engine.db.models import Goal
from checkin_engine.repositories.base import GoalRef


class SqlAlchemyGoalLookup:
    """Read-only access to goals owned by the goal CRUD context."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_goal(self, goal_id: UUID) -> Optional[GoalRef]:
        try:
            async with self._session_factory() as session:
                g = await session.get(Goal, goal_id)
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to load goal {goal_id}", detail=str(e)) from e
        if g is None:
            return None
        return GoalRef(id=g.id, user_id=g.user_id, title=g.title, category=g.category)
