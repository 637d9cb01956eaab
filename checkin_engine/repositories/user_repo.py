from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkin_engine.core.errors import StoreFailure
from checkin_engine.db.models import User
from checkin_engine.repositories.base import UserRef


def _user_ref(u: User) -> UserRef:
    return UserRef(
        id=u.id,
        email=u.email,
        first_name=u.first_name,
        is_active=u.is_active,
        email_summaries=u.email_summaries,
    )


class SqlAlchemyUserDirectory:
    """Read-only access to the profile fields needed to address notifications."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_user(self, user_id: UUID) -> Optional[UserRef]:
        try:
            async with self._session_factory() as session:
                u = await session.get(User, user_id)
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to load user {user_id}", detail=str(e)) from e
        return _user_ref(u) if u is not None else None

    async def list_active_users(self) -> list[UserRef]:
        try:
            async with self._session_factory() as session:
                res = await session.execute(select(User).where(User.is_active.is_(True)).order_by(User.created_at))
                return [_user_ref(u) for u in res.scalars()]
        except SQLAlchemyError as e:
            raise StoreFailure("Failed to list active users", detail=str(e)) from e
