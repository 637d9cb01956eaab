from fastapi import APIRouter, Depends

from checkin_engine.api.deps import get_orchestrator
from checkin_engine.core.security import get_current_user
from checkin_engine.schemas.jobs import JobStatusOut, JobTriggerOut
from checkin_engine.services.jobs import JobOrchestrator

router = APIRouter(prefix="/api/admin/jobs", tags=["admin"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=list[JobStatusOut])
async def list_jobs(orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    return [JobStatusOut.model_validate(s) for s in orchestrator.status()]


@router.get("/{name}", response_model=JobStatusOut)
async def get_job(name: str, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    return JobStatusOut.model_validate(orchestrator.job_status(name))


@router.post("/{name}/trigger", response_model=JobTriggerOut)
async def trigger_job(name: str, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    result = await orchestrator.trigger(name)
    return {"name": name, "result": result}
