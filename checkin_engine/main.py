import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from checkin_engine.api.routes import admin, checkins, health
from checkin_engine.core.config import settings
from checkin_engine.core.errors import CheckInEngineError
from checkin_engine.core.logging import configure_logging
from checkin_engine.schemas.common import DatabaseError, ErrorResponse
from checkin_engine.services.checkin_jobs import register_default_jobs
from checkin_engine.services.engine import CheckInEngine, build_checkin_engine
from checkin_engine.services.jobs import JobOrchestrator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "engine", None) is None:
        from checkin_engine.db.init_db import init_db
        from checkin_engine.db.session import SessionLocal

        await init_db()
        app.state.engine = build_checkin_engine(settings, SessionLocal)

    if getattr(app.state, "orchestrator", None) is None:
        orchestrator = JobOrchestrator(timezone=settings.SCHEDULER_TIMEZONE)
        register_default_jobs(orchestrator, app.state.engine)
        app.state.orchestrator = orchestrator

    orchestrator = app.state.orchestrator
    if settings.SCHEDULER_ENABLED:
        orchestrator.start()
    else:
        logger.info("Scheduler disabled; jobs run only when triggered")
    try:
        yield
    finally:
        await orchestrator.stop()


def create_app(
    engine: Optional[CheckInEngine] = None,
    orchestrator: Optional[JobOrchestrator] = None,
) -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.engine = engine
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(CheckInEngineError)
    async def engine_error_handler(request: Request, exc: CheckInEngineError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        else:
            logger.info("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        body = ErrorResponse(error=exc.message, detail=exc.detail, error_code=exc.error_code)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.exception_handler(ProgrammingError)
    async def programming_error_handler(request: Request, exc: ProgrammingError):
        logger.error("Database programming error: %s", exc)
        if "does not exist" in str(exc):
            body = DatabaseError(
                error="Database schema mismatch detected",
                detail="The application schema is out of sync with the database.",
                error_code="SCHEMA_MISMATCH",
            )
            return JSONResponse(status_code=503, content=body.model_dump())
        body = DatabaseError(error="Database query error", detail="There was an error executing the database query")
        return JSONResponse(status_code=500, content=body.model_dump())

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError):
        logger.error("Database operational error: %s", exc)
        body = DatabaseError(
            error="Database connection error",
            detail="Unable to connect to the database. Please try again later.",
            error_code="DATABASE_CONNECTION_ERROR",
        )
        return JSONResponse(status_code=503, content=body.model_dump())

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.error("Database integrity error: %s", exc)
        body = DatabaseError(
            error="Data integrity violation",
            detail="The operation violates database constraints",
            error_code="DATA_INTEGRITY_ERROR",
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    # routes
    app.include_router(health.router)
    app.include_router(checkins.router)
    app.include_router(admin.router)
    return app


app = create_app()
