from fastapi import Depends, Request

from checkin_engine.core.security import get_current_user
from checkin_engine.services.engine import CheckInEngine
from checkin_engine.services.jobs import JobOrchestrator


def get_engine(request: Request) -> CheckInEngine:
    return request.app.state.engine


def get_orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator


def Authed(engine: CheckInEngine = Depends(get_engine), user=Depends(get_current_user)):
    return {"engine": engine, "user_id": user["user_id"]}
