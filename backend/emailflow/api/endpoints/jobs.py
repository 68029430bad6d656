"""Job trigger and history endpoints."""
from typing import List, Optional
from fastapi import APIRouter, Depends, BackgroundTasks, Query
from sqlalchemy.orm import Session

from emailflow.api.deps import get_db, get_auth_context, get_messaging_adapter
from emailflow.core.context import AuthContext
from emailflow.db.models.job_run import JobRun, JobStatus
from emailflow.schemas.job import JobRunResponse
from emailflow.services.adapters.base import MessagingAdapter
from emailflow.services.pipelines.contact_sync import run_contact_sync, run_contact_sync_job
from emailflow.services.pipelines.priority_sender import run_priority_sender, run_priority_sender_job

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get("", response_model=List[JobRunResponse])
async def list_job_runs(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    pipeline_name: Optional[str] = None,
    status_filter: Optional[JobStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """List job runs, newest first."""
    query = db.query(JobRun)

    if pipeline_name:
        query = query.filter(JobRun.pipeline_name == pipeline_name)
    if status_filter:
        query = query.filter(JobRun.status == status_filter)

    runs = query.order_by(JobRun.started_at.desc(), JobRun.run_id.desc()).offset(skip).limit(limit).all()
    return [JobRunResponse.model_validate(r) for r in runs]


# Sync runs block on provider calls and send delays; plain def keeps them
# in the threadpool, off the event loop.
@router.post("/priority-sender")
def trigger_priority_sender(
    background_tasks: BackgroundTasks,
    background: bool = False,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    adapter: MessagingAdapter = Depends(get_messaging_adapter)
):
    """Run the priority sender now, or queue it with `background=true`.

    The GHL connection is checked before anything is sent in both modes.
    """
    if background:
        background_tasks.add_task(run_priority_sender_job, auth, triggered_by=auth.actor)
        return {"message": "Priority sender started", "status": "processing"}

    counters = run_priority_sender(db, adapter, triggered_by=auth.actor)
    return {"status": "completed", "counters": counters}


@router.post("/contact-sync")
def trigger_contact_sync(
    background_tasks: BackgroundTasks,
    background: bool = False,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    adapter: MessagingAdapter = Depends(get_messaging_adapter)
):
    """Sync contacts from GHL now, or queue it with `background=true`."""
    if background:
        background_tasks.add_task(run_contact_sync_job, auth, triggered_by=auth.actor)
        return {"message": "Contact sync started", "status": "processing"}

    counters = run_contact_sync(db, adapter, triggered_by=auth.actor)
    return {"status": "completed", "counters": counters}
