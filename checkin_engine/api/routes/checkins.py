from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from checkin_engine.api.deps import Authed
from checkin_engine.schemas.checkin import (
    AssessmentQuestionOut,
    CheckinAnalyticsOut,
    CheckinComplete,
    CheckinCompleteOut,
    CheckinCreate,
    CheckinOut,
    CheckinReschedule,
    CheckinTrendOut,
    NotificationOutcomeOut,
    RecurringSeriesCreate,
)
from checkin_engine.services import checkin as svc
from checkin_engine.services.analytics import checkin_analytics, checkin_trends
from checkin_engine.services.assessment import questions_for_checkin

router = APIRouter(prefix="/api/checkins", tags=["checkins"])


@router.post("", response_model=CheckinOut, status_code=201)
async def create(payload: CheckinCreate, ctx=Depends(Authed)):
    engine = ctx["engine"]
    ci = await svc.create_checkin(
        engine.store,
        engine.goals,
        user_id=ctx["user_id"],
        goal_id=payload.goal_id,
        frequency=payload.frequency.value,
        scheduled_date=payload.scheduled_date,
        title=payload.title,
        description=payload.description,
        type=payload.type.value,
        custom=payload.custom_frequency.to_domain() if payload.custom_frequency else None,
        journey_id=payload.journey_id,
        is_recurring=payload.is_recurring,
        recurrence_end_date=payload.recurrence_end_date,
        reminder_settings=payload.reminder_settings.to_domain() if payload.reminder_settings else None,
    )
    return CheckinOut.from_entity(ci)


@router.post("/recurring", response_model=list[CheckinOut], status_code=201)
async def create_recurring(payload: RecurringSeriesCreate, ctx=Depends(Authed)):
    engine = ctx["engine"]
    series = await svc.create_recurring_series(
        engine.store,
        engine.goals,
        user_id=ctx["user_id"],
        goal_id=payload.goal_id,
        frequency=payload.frequency.value,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reminder_settings=payload.reminder_settings.to_domain() if payload.reminder_settings else None,
        custom=payload.custom_frequency.to_domain() if payload.custom_frequency else None,
        journey_id=payload.journey_id,
    )
    return [CheckinOut.from_entity(ci) for ci in series]


@router.get("/upcoming", response_model=list[CheckinOut])
async def upcoming(limit: int = Query(default=svc.DEFAULT_UPCOMING_LIMIT, ge=1, le=100), ctx=Depends(Authed)):
    items = await svc.get_upcoming(ctx["engine"].store, ctx["user_id"], limit)
    return [CheckinOut.from_entity(ci) for ci in items]


@router.get("/overdue", response_model=list[CheckinOut])
async def overdue(ctx=Depends(Authed)):
    items = await svc.get_overdue(ctx["engine"].store, ctx["user_id"])
    return [CheckinOut.from_entity(ci) for ci in items]


@router.get("/range", response_model=list[CheckinOut])
async def by_date_range(start: datetime, end: datetime, ctx=Depends(Authed)):
    items = await svc.get_by_date_range(ctx["engine"].store, ctx["user_id"], start, end)
    return [CheckinOut.from_entity(ci) for ci in items]


@router.get("/analytics", response_model=CheckinAnalyticsOut)
async def analytics(period: str = Query(default="month", pattern="^(week|month|quarter|year)$"), ctx=Depends(Authed)):
    return await checkin_analytics(ctx["engine"].store, ctx["user_id"], period)


@router.get("/trends", response_model=list[CheckinTrendOut])
async def trends(period: str = Query(default="month", pattern="^(week|month|quarter|year)$"), ctx=Depends(Authed)):
    return await checkin_trends(ctx["engine"].store, ctx["user_id"], period)


@router.get("/{checkin_id}", response_model=CheckinOut)
async def get_one(checkin_id: UUID, ctx=Depends(Authed)):
    ci = await svc.get_checkin(ctx["engine"].store, checkin_id, user_id=ctx["user_id"])
    return CheckinOut.from_entity(ci)


@router.get("/{checkin_id}/questions", response_model=list[AssessmentQuestionOut])
async def assessment_questions(checkin_id: UUID, ctx=Depends(Authed)):
    engine = ctx["engine"]
    questions = await questions_for_checkin(engine.store, engine.goals, checkin_id, user_id=ctx["user_id"])
    return [AssessmentQuestionOut.model_validate(q) for q in questions]


@router.post("/{checkin_id}/complete", response_model=CheckinCompleteOut)
async def complete(checkin_id: UUID, payload: CheckinComplete, ctx=Depends(Authed)):
    engine = ctx["engine"]
    assessment = payload.progress_assessment.model_dump(mode="json", exclude_none=True) if payload.progress_assessment else None
    responses = [r.model_dump(mode="json") for r in payload.responses] if payload.responses else None
    result = await svc.complete_checkin(
        engine.store,
        checkin_id,
        user_id=ctx["user_id"],
        assessment=assessment,
        responses=responses,
        dispatcher=engine.dispatcher,
        max_retries=engine.max_retries,
    )
    return CheckinCompleteOut(
        checkin=CheckinOut.from_entity(result.checkin),
        notifications=[NotificationOutcomeOut.model_validate(o) for o in result.notifications],
    )


@router.post("/{checkin_id}/miss", response_model=CheckinOut)
async def miss(checkin_id: UUID, ctx=Depends(Authed)):
    engine = ctx["engine"]
    ci = await svc.miss_checkin(engine.store, checkin_id, user_id=ctx["user_id"], max_retries=engine.max_retries)
    return CheckinOut.from_entity(ci)


@router.post("/{checkin_id}/reschedule", response_model=CheckinOut)
async def reschedule(checkin_id: UUID, payload: CheckinReschedule, ctx=Depends(Authed)):
    engine = ctx["engine"]
    ci = await svc.reschedule_checkin(
        engine.store, checkin_id, payload.scheduled_date, user_id=ctx["user_id"], max_retries=engine.max_retries
    )
    return CheckinOut.from_entity(ci)
