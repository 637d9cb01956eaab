from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class JobStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    description: str
    schedule: str
    scheduled: bool
    running: bool
    next_run_time: Optional[datetime] = None
    runs: int
    skipped: int
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_result: Any = None
    last_error: Optional[str] = None


class JobTriggerOut(BaseModel):
    name: str
    result: Any = None
