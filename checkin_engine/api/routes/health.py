'''
Liveness check for the API process, and a fuller check covering database
connectivity and the job scheduler.
'''
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from checkin_engine.core.config import settings
from checkin_engine.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """
    Simple liveness check for deployments.
    Does not require database connectivity.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "message": "API is running",
        "service": settings.APP_NAME,
    }


@router.get("/health/full")
async def health_full(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Verifies database connectivity and reports whether the job scheduler is running.
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "unknown",
        "scheduler": "running" if orchestrator is not None and orchestrator.is_running else "stopped",
        "service": settings.APP_NAME,
    }

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        health_status["database"] = "connected"
    except (SQLAlchemyError, OSError) as e:
        logger.error("Database health check failed: %s", str(e))
        health_status["status"] = "unhealthy"
        health_status["database"] = "disconnected"
        health_status["error"] = str(e)

    return health_status
