"""SQLAlchemy model & helpers for blog generation jobs.

One row per queued job.  Batch jobs get a unique id per request; the
continuous job of a user always lives under ``blog-gen-continuous-<userId>``
so the primary key itself prevents a second schedule for the same user.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, BigInteger, Column, DateTime, Enum as SAEnum, Float, Integer, String, Text

from app.db.base import Base


class JobState(str, Enum):
    """Lifecycle of a background generation job."""

    WAITING = "waiting"
    ACTIVE = "active"
    DELAYED = "delayed"
    COMPLETED = "completed"
    FAILED = "failed"


LIVE_STATES = (JobState.WAITING, JobState.ACTIVE, JobState.DELAYED)


class JobKind(str, Enum):
    BATCH = "batch"
    CONTINUOUS = "continuous"


class GenerationJob(Base):
    """Persistent representation of a queued blog generation job."""

    __tablename__ = "generation_jobs"

    id: str = Column(String(128), primary_key=True)
    kind: JobKind = Column(SAEnum(JobKind), nullable=False)
    user_id: str = Column(String(64), nullable=False, index=True)
    author_id: str = Column(String(64), nullable=False)
    config: dict = Column(JSON, nullable=False)
    priority: int = Column(Integer, nullable=False, default=1)
    state: JobState = Column(SAEnum(JobState), nullable=False, default=JobState.WAITING, index=True)
    attempts_made: int = Column(Integer, nullable=False, default=0)
    max_attempts: int = Column(Integer, nullable=False, default=3)
    progress: float = Column(Float, nullable=False, default=0.0)
    result: Optional[dict] = Column(JSON, nullable=True)
    failed_reason: Optional[str] = Column(Text, nullable=True)
    repeat_every_ms: Optional[int] = Column(BigInteger, nullable=True)
    runs_completed: int = Column(Integer, nullable=False, default=0)
    task_id: Optional[str] = Column(String(64), nullable=True)
    next_run_at: Optional[datetime] = Column(DateTime(timezone=True), nullable=True)
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    processed_at: Optional[datetime] = Column(DateTime(timezone=True), nullable=True)
    finished_at: Optional[datetime] = Column(DateTime(timezone=True), nullable=True)

    @property
    def state_str(self) -> str:
        return self.state.value if isinstance(self.state, JobState) else str(self.state)

    @property
    def is_recurring(self) -> bool:
        return self.repeat_every_ms is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value if isinstance(self.kind, JobKind) else self.kind,
            "user_id": self.user_id,
            "state": self.state_str,
            "priority": self.priority,
            "progress": self.progress,
            "attempts_made": self.attempts_made,
            "failed_reason": self.failed_reason,
            "result": self.result,
            "repeat_every_ms": self.repeat_every_ms,
            "runs_completed": self.runs_completed,
            "config": self.config,
            "created_at": self.created_at,
            "processed_at": self.processed_at,
            "finished_at": self.finished_at,
            "next_run_at": self.next_run_at,
        }
