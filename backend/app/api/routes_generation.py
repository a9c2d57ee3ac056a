"""Admin routes driving automatic blog post generation."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.api.deps import CurrentUser, get_generation_control, require_admin
from app.models.generation_config import MediaType, SortOption
from app.services.errors import InvalidGenerationConfig, JobAlreadyRunningError, ProgressResetConflict
from app.services.generation_control import GenerationControlService, parse_config

router = APIRouter()
logger = logging.getLogger(__name__)


class ProgressResetRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    media_type: MediaType
    sort_by: SortOption


@router.post("/auto-generate")
def start_generation(
    body: Dict[str, Any] = Body(...),
    user: CurrentUser = Depends(require_admin),
    control: GenerationControlService = Depends(get_generation_control),
) -> Dict[str, Any]:
    """Queue a batch run or start continuous generation."""
    try:
        config = parse_config(body)
    except InvalidGenerationConfig as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.message)

    try:
        job = control.start(user.id, user.id, config)
    except JobAlreadyRunningError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)

    if config.mode == "continuous":
        message = f"Continuous generation started: {config.posts_per_hour} post(s) per hour"
    else:
        message = f"Blog generation queued: {config.count} post(s)"
    return {"success": True, "message": message, "jobId": job.id}


@router.get("/auto-generate/status")
def generation_status(
    user: CurrentUser = Depends(require_admin),
    control: GenerationControlService = Depends(get_generation_control),
) -> Dict[str, Any]:
    data = control.status(user.id)
    return {"success": True, "status": {to_camel(key): value for key, value in data.items()}}


@router.post("/auto-generate/stop")
def stop_generation(
    user: CurrentUser = Depends(require_admin),
    control: GenerationControlService = Depends(get_generation_control),
) -> Dict[str, Any]:
    return {"success": True, "message": control.stop(user.id)}


@router.get("/progress")
def list_progress(
    user: CurrentUser = Depends(require_admin),
    control: GenerationControlService = Depends(get_generation_control),
) -> Dict[str, Any]:
    return {"success": True, "progress": control.list_progress(user.id)}


@router.post("/progress/reset")
def reset_progress(
    request: ProgressResetRequest,
    user: CurrentUser = Depends(require_admin),
    control: GenerationControlService = Depends(get_generation_control),
) -> Dict[str, Any]:
    """Start the (media type, sort) listing over from page 1."""
    try:
        deleted = control.reset_progress(user.id, request.media_type, request.sort_by)
    except ProgressResetConflict as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)

    if deleted:
        message = f"Progress reset for {request.media_type}/{request.sort_by}"
    else:
        message = f"No progress recorded for {request.media_type}/{request.sort_by}"
    return {"success": True, "message": message}
