from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from app.api.deps import CurrentUser, get_generation_control, require_admin
from app.services.errors import JobNotFoundError
from app.services.generation_control import GenerationControlService

router = APIRouter()
logger = logging.getLogger(__name__)


class JobInfo(BaseModel):
    id: str
    kind: str
    state: str
    priority: int
    progress: float
    attempts_made: int
    failed_reason: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    repeat_every_ms: Optional[int] = None
    runs_completed: int = 0
    config: Dict[str, Any]
    created_at: datetime
    processed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None


@router.get("/auto-generate/jobs", response_model=List[JobInfo])
def list_jobs(
    user: CurrentUser = Depends(require_admin),
    control: GenerationControlService = Depends(get_generation_control),
) -> List[JobInfo]:
    """Return the caller's generation jobs, newest first."""
    return [JobInfo(**job) for job in control.user_jobs(user.id)]


@router.delete("/auto-generate/jobs/{job_id}")
def cancel_job(
    job_id: str,
    user: CurrentUser = Depends(require_admin),
    control: GenerationControlService = Depends(get_generation_control),
) -> Dict[str, Any]:
    """Remove a single job from the queue."""
    try:
        control.cancel_job(user.id, job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return {"success": True, "message": f"Job {job_id} cancelled"}


@router.get("/auto-generate/metrics")
def queue_metrics(
    _user: CurrentUser = Depends(require_admin),
    control: GenerationControlService = Depends(get_generation_control),
) -> Dict[str, Any]:
    """Job counts per state for the whole queue."""
    return {"success": True, "metrics": control.metrics()}
