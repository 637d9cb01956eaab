import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from checkin_engine.db.models import Base

logger = logging.getLogger(__name__)


async def init_db(engine: AsyncEngine | None = None):
    """Create the users, goals and checkins tables if they do not exist"""
    if engine is None:
        from checkin_engine.db.session import engine
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize database: %s", e)
        raise


if __name__ == "__main__":
    asyncio.run(init_db())
