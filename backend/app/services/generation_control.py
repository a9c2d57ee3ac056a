"""Start / status / stop operations behind the admin blog generation routes."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from app.models.generation_config import GenerationConfig, JobPayload
from app.models.job import GenerationJob, JobKind
from app.services.errors import InvalidGenerationConfig, JobNotFoundError, ProgressResetConflict
from app.services.generation_status import StatusStore
from app.services.job_queue import JobQueue, continuous_job_id
from app.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)

BATCH_STOP_MESSAGE = "Generation will stop after current item completes"
CONTINUOUS_STOP_MESSAGE = "Continuous generation stopped. No more posts will be generated."


def parse_config(raw: Dict[str, Any]) -> GenerationConfig:
    """Validate a request body into a :class:`GenerationConfig`.

    Raises:
        InvalidGenerationConfig: with the first validation message.
    """
    try:
        return GenerationConfig.model_validate(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        message = first.get("msg", "Invalid configuration")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidGenerationConfig(f"{location}: {message}" if location else message) from exc


class GenerationControlService:
    """Glue between the HTTP surface, the job queue and the live status."""

    def __init__(self, queue: JobQueue, status_store: StatusStore, progress_store: ProgressStore) -> None:
        self._queue = queue
        self._status = status_store
        self._progress = progress_store

    def start(self, user_id: str, author_id: str, config: GenerationConfig) -> GenerationJob:
        """Enqueue a batch job or register the continuous schedule.

        Raises:
            JobAlreadyRunningError: continuous generation already live for the user.
        """
        payload = JobPayload(user_id=user_id, author_id=author_id, config=config)
        if config.mode == "continuous":
            if not self._has_live_schedule(user_id):
                # The schedule id is reused across starts.
                self._status.clear_stop(user_id, continuous_job_id(user_id))
            job = self._queue.enqueue_continuous(payload)
        else:
            job = self._queue.enqueue_batch(payload)
        logger.info("User %s started %s generation as job %s", user_id, config.mode, job.id)
        return job

    def status(self, user_id: str) -> Dict[str, Any]:
        """Live status with ``is_running`` taken from the queue and the cursor of the current listing."""
        status = self._status.get(user_id)
        live_jobs = self._queue.live_jobs_for_user(user_id)
        if status.is_running != bool(live_jobs):
            logger.debug("Correcting is_running for user %s to %s", user_id, bool(live_jobs))
        status.is_running = bool(live_jobs)

        data = status.model_dump()
        record = self._progress.get(user_id, status.media_type, status.sort_by)
        data["current_page"] = record.current_page if record else 1
        data["current_index"] = record.current_index if record else 0
        data["total_generated"] = record.total_generated if record else 0
        data["active_jobs"] = [job.id for job in live_jobs]
        return data

    def stop(self, user_id: str) -> str:
        """Request a stop and return the message describing what will happen."""
        status = self._status.get(user_id)
        continuous = status.mode == "continuous" or self._has_live_schedule(user_id)
        if continuous:
            self._queue.stop_continuous(user_id)
        live_ids = [job.id for job in self._queue.live_jobs_for_user(user_id)]
        self._status.request_stop(user_id, live_ids)
        logger.info("User %s requested a stop (%s)", user_id, "continuous" if continuous else "batch")
        return CONTINUOUS_STOP_MESSAGE if continuous else BATCH_STOP_MESSAGE

    def list_progress(self, user_id: str) -> List[Dict[str, Any]]:
        return [record.to_dict() for record in self._progress.list_for_user(user_id)]

    def reset_progress(self, user_id: str, media_type: str, sort_by: str) -> bool:
        """Forget the cursor of one listing.

        Raises:
            ProgressResetConflict: a live job of the user still works on that listing.
        """
        for job in self._queue.live_jobs_for_user(user_id):
            config = job.config or {}
            if config.get("type") == media_type and config.get("sort_by") == sort_by:
                raise ProgressResetConflict(
                    f"Job {job.id} is still generating {media_type}/{sort_by}; stop it before resetting progress"
                )
        return self._progress.reset_key(user_id, media_type, sort_by)

    def user_jobs(self, user_id: str) -> List[Dict[str, Any]]:
        jobs = []
        for job in self._queue.get_user_jobs(user_id):
            data = job.to_dict()
            data["config"] = {k: v for k, v in (job.config or {}).items() if k != "api_key"}
            jobs.append(data)
        return jobs

    def cancel_job(self, user_id: str, job_id: str) -> None:
        """Remove one of the user's jobs; other users' jobs look like missing ones."""
        job = self._queue.get_job(job_id)
        if job is None or job.user_id != user_id:
            raise JobNotFoundError(f"Job {job_id} not found")
        self._queue.cancel(job_id)

    def metrics(self) -> Dict[str, int]:
        return self._queue.metrics()

    def _has_live_schedule(self, user_id: str) -> bool:
        return any(job.kind == JobKind.CONTINUOUS for job in self._queue.live_jobs_for_user(user_id))
