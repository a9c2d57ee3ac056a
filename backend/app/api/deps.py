"""FastAPI dependencies: caller identity and service wiring.

Authentication happens upstream; the gateway forwards the verified user id
and role in ``X-User-Id`` / ``X-User-Role``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.db.database import SessionLocal
from app.services.generation_control import GenerationControlService
from app.services.progress_store import ProgressStore


@dataclass
class CurrentUser:
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CurrentUser:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return CurrentUser(id=x_user_id, role=(x_user_role or "user").lower())


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def get_generation_control() -> GenerationControlService:
    # Imported lazily: the tasks module configures Celery and the worker logging.
    from app.workers.tasks import build_job_queue, build_status_store

    return GenerationControlService(
        queue=build_job_queue(),
        status_store=build_status_store(),
        progress_store=ProgressStore(SessionLocal),
    )
