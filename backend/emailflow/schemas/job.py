"""Job run schemas."""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel
from emailflow.db.models.job_run import JobStatus


class JobRunResponse(BaseModel):
    """Schema for job run response."""
    run_id: int
    pipeline_name: str
    status: JobStatus
    started_at: datetime
    ended_at: Optional[datetime] = None
    counters_json: Optional[str] = None
    counters: Dict[str, Any] = {}
    duration_seconds: Optional[float] = None
    error_message: Optional[str] = None
    triggered_by: Optional[str] = None

    class Config:
        from_attributes = True
