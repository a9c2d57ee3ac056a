"""Live, per-user generation status kept in Redis.

The status record is ephemeral (one hour TTL) and shared between the API
process and the worker.  ``is_running`` is whatever the worker last wrote;
the control layer corrects it against the queue before returning it.

Stop requests travel through separate per-job keys so that the worker, which
owns the status record, never has its counters overwritten by the API, and
a stop only reaches the jobs that were live when it was requested.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Iterable, List, Optional

import redis
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MAX_LOGS = 50
MAX_ERRORS = 10


class GenerationStatus(BaseModel):
    user_id: str
    is_running: bool = False
    mode: str = "batch"
    media_type: str = "movie"
    sort_by: str = "popular"
    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    current_title: Optional[str] = None
    job_id: Optional[str] = None
    started_at: Optional[datetime] = None
    last_generated_at: Optional[datetime] = None
    posts_per_hour: Optional[int] = None
    next_scheduled_at: Optional[datetime] = None
    errors: List[str] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)

    def add_log(self, message: str) -> None:
        self.logs.append(f"[{datetime.utcnow().strftime('%H:%M:%S')}] {message}")
        self.logs = self.logs[-MAX_LOGS:]

    def add_error(self, message: str) -> None:
        self.errors.insert(0, f"[{datetime.utcnow().isoformat(timespec='seconds')}] {message}")
        self.errors = self.errors[:MAX_ERRORS]


class StatusStore:
    """Reads and writes :class:`GenerationStatus` records and stop flags."""

    def __init__(self, client: redis.Redis, ttl_seconds: int = 3600) -> None:
        self._redis = client
        self._ttl = ttl_seconds

    @staticmethod
    def status_key(user_id: str) -> str:
        return f"blog:generation:status:{user_id}"

    @staticmethod
    def stop_key(user_id: str, job_id: str) -> str:
        return f"blog:generation:stop:{user_id}:{job_id}"

    def get(self, user_id: str) -> GenerationStatus:
        """Stored status, or a fresh idle record when nothing (readable) is stored."""
        raw = self._redis.get(self.status_key(user_id))
        if raw:
            try:
                return GenerationStatus.model_validate_json(raw)
            except ValueError:
                logger.warning("Discarding unreadable generation status for user %s", user_id)
        return GenerationStatus(user_id=user_id)

    def save(self, status: GenerationStatus) -> None:
        self._redis.set(self.status_key(status.user_id), status.model_dump_json(), ex=self._ttl)

    def record_error(self, user_id: str, message: str) -> None:
        """Mark the user's run as failed and remember the reason."""
        status = self.get(user_id)
        status.is_running = False
        status.current_title = None
        status.failed += 1
        status.add_error(message)
        status.add_log(f"Error: {message}")
        self.save(status)

    def request_stop(self, user_id: str, job_ids: Iterable[str]) -> None:
        """Flag each of ``job_ids``; jobs queued afterwards are not affected."""
        marker = json.dumps({"requested_at": datetime.utcnow().isoformat()})
        for job_id in job_ids:
            self._redis.set(self.stop_key(user_id, job_id), marker, ex=self._ttl)

    def clear_stop(self, user_id: str, job_id: str) -> None:
        self._redis.delete(self.stop_key(user_id, job_id))

    def stop_requested(self, user_id: str, job_id: str) -> bool:
        return bool(self._redis.exists(self.stop_key(user_id, job_id)))


class StopToken:
    """Cancellation token handed to the generation engine.

    Checked once per item; ``cancelled`` becomes true after the user asks to
    stop this job and stays true for the rest of the run.
    """

    def __init__(self, status_store: StatusStore, user_id: str, job_id: str) -> None:
        self._status_store = status_store
        self._user_id = user_id
        self._job_id = job_id
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        if not self._cancelled:
            self._cancelled = self._status_store.stop_requested(self._user_id, self._job_id)
        return self._cancelled


class NeverCancelled:
    """Token for callers that cannot be stopped (scripts, tests)."""

    cancelled = False
