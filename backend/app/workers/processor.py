"""Executes one delivered generation job.

Kept free of Celery so the job lifecycle can be exercised with plain
objects; :mod:`app.workers.tasks` wraps it in the Celery task and turns the
queue's retry decision into ``Task.retry``.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis

from app.models.generation_config import GenerationConfig, JobPayload
from app.models.job import GenerationJob, JobKind
from app.services.blog_generation import BlogGenerationEngine
from app.services.generation_status import StatusStore, StopToken
from app.services.job_queue import JobQueue

logger = logging.getLogger(__name__)

START_PROGRESS = 5


def run_key_for(job: GenerationJob) -> str:
    """Key stored on every post of a run; stable across retries of that run."""
    if job.kind == JobKind.CONTINUOUS:
        return f"{job.id}#{job.runs_completed + 1}"
    return job.id


def payload_for(job: GenerationJob) -> JobPayload:
    return JobPayload(
        user_id=job.user_id,
        author_id=job.author_id,
        config=GenerationConfig.model_validate(job.config),
    )


def process_generation_job(
    job_id: str,
    *,
    queue: JobQueue,
    engine: BlogGenerationEngine,
    status_store: StatusStore,
    delivery_id: Optional[str] = None,
) -> Optional[dict]:
    """Run ``job_id`` to completion and return its result.

    Returns None when the job no longer needs to run (removed, already
    finished by an earlier delivery, or ``delivery_id`` is a stale broker
    message).  Any engine error is recorded on the
    user's live status and re-raised for the retry policy.
    """
    job = queue.mark_active(job_id, delivery_id)
    if job is None:
        logger.warning("Job %s is gone, finished or not due, skipping delivery %s", job_id, delivery_id)
        return None

    run_key = run_key_for(job)
    logger.info("Processing job %s (attempt %d/%d, run %s)", job_id, job.attempts_made, job.max_attempts, run_key)
    queue.update_progress(job_id, START_PROGRESS)

    try:
        outcome = engine.run(
            payload_for(job),
            run_key=run_key,
            token=StopToken(status_store, job.user_id, job_id),
            report_progress=lambda pct: queue.update_progress(job_id, max(START_PROGRESS, pct)),
        )
    except Exception as exc:
        logger.error("Job %s failed: %s", job_id, exc, exc_info=True)
        try:
            status_store.record_error(job.user_id, str(exc))
        except redis.RedisError as status_exc:
            logger.error("Could not record failure of job %s on the live status: %s", job_id, status_exc)
        raise

    result = outcome.to_dict()
    if outcome.stopped:
        status_store.clear_stop(job.user_id, job_id)
    finished = queue.mark_completed(job_id, result)
    if finished is not None and finished.is_recurring and finished.next_run_at is not None:
        status = status_store.get(job.user_id)
        status.next_scheduled_at = finished.next_run_at
        status_store.save(status)
    logger.info("Job %s finished: %s", job_id, result)
    return result
