"""Durable queue of blog generation jobs.

Job rows live in the database (``generation_jobs``) and are the source of
truth for state, attempts and progress; the message broker only carries
"run job <id> now / in N seconds" deliveries through a :class:`Dispatcher`.
Delivery is at-least-once: a redelivered message for a job that is already
finished or removed, or that is not the delivery the row is waiting for,
is ignored by :meth:`JobQueue.mark_active`.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.models.generation_config import JobPayload
from app.models.job import LIVE_STATES, GenerationJob, JobKind, JobState
from app.services.errors import JobAlreadyRunningError, JobNotFoundError

logger = logging.getLogger(__name__)

BATCH_PRIORITY = 1
CONTINUOUS_PRIORITY = 2
MS_PER_HOUR = 3_600_000


class Dispatcher(Protocol):
    def dispatch(self, job_id: str, *, countdown: float = 0.0, priority: int = BATCH_PRIORITY) -> str:
        """Deliver ``job_id`` to a worker after ``countdown`` seconds; returns the broker task id."""

    def revoke(self, task_id: str) -> None:
        """Drop a delivery that has not started yet."""


def continuous_job_id(user_id: str) -> str:
    return f"blog-gen-continuous-{user_id}"


def continuous_interval_ms(posts_per_hour: int) -> int:
    """Milliseconds between continuous runs (4 posts/hour -> 900000)."""
    if not 1 <= posts_per_hour <= 10:
        raise ValueError("posts_per_hour must be between 1 and 10")
    return MS_PER_HOUR // posts_per_hour


def backoff_delay(attempts_made: int, base_seconds: float = 2.0) -> float:
    """Exponential backoff before the next attempt: 2s after the first failure, then 4s, 8s..."""
    return base_seconds * 2 ** max(0, attempts_made - 1)


class JobQueue:
    """Enqueue, inspect and book-keep generation jobs."""

    def __init__(
        self,
        session_factory: sessionmaker,
        dispatcher: Dispatcher,
        *,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        completed_retained: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self.max_attempts = max_attempts or settings.JOB_MAX_ATTEMPTS
        self.backoff_seconds = backoff_seconds or settings.JOB_BACKOFF_SECONDS
        self.completed_retained = completed_retained or settings.COMPLETED_JOBS_RETAINED

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue_batch(self, payload: JobPayload) -> GenerationJob:
        """Queue a one-shot job under a fresh id with batch priority."""
        db = self._session_factory()
        try:
            job_id = f"blog-gen-{payload.user_id}-{int(time.time() * 1000)}"
            if db.get(GenerationJob, job_id) is not None:
                job_id = f"{job_id}-{uuid.uuid4().hex[:6]}"
            job = self._new_job(job_id, JobKind.BATCH, payload, BATCH_PRIORITY)
            db.add(job)
            db.commit()
        finally:
            db.close()

        logger.info("Added batch job %s for user %s (%s)", job_id, payload.user_id, payload.config.describe())
        return self._dispatch(job_id, countdown=0.0, priority=BATCH_PRIORITY)

    def enqueue_continuous(self, payload: JobPayload) -> GenerationJob:
        """Register the user's recurring job; the first run fires immediately.

        Raises:
            JobAlreadyRunningError: a waiting, active or delayed continuous job
                already exists for the user.
        """
        interval_ms = continuous_interval_ms(payload.config.posts_per_hour)
        job_id = continuous_job_id(payload.user_id)
        db = self._session_factory()
        try:
            existing = db.get(GenerationJob, job_id)
            if existing is not None:
                if existing.state in LIVE_STATES:
                    raise JobAlreadyRunningError("Continuous generation is already running for this user")
                db.delete(existing)
                db.flush()
            job = self._new_job(job_id, JobKind.CONTINUOUS, payload, CONTINUOUS_PRIORITY)
            job.repeat_every_ms = interval_ms
            job.next_run_at = datetime.utcnow()
            db.add(job)
            try:
                db.commit()
            except IntegrityError as exc:
                # Another start for the same user inserted the row after our read.
                db.rollback()
                raise JobAlreadyRunningError("Continuous generation is already running for this user") from exc
        finally:
            db.close()

        logger.info("Registered continuous job %s every %d ms", job_id, interval_ms)
        return self._dispatch(job_id, countdown=0.0, priority=CONTINUOUS_PRIORITY)

    def cancel(self, job_id: str) -> None:
        """Remove one job.  A run that already started is not interrupted, its results are discarded."""
        db = self._session_factory()
        try:
            job = db.get(GenerationJob, job_id)
            if job is None:
                raise JobNotFoundError(f"Job {job_id} not found")
            task_id = job.task_id
            db.delete(job)
            db.commit()
        finally:
            db.close()
        if task_id:
            self._dispatcher.revoke(task_id)
        logger.info("Cancelled job %s", job_id)

    def stop_continuous(self, user_id: str) -> bool:
        """Remove the user's recurring schedule so no further run fires.

        An occurrence that is executing right now finishes normally and then
        completes without being rescheduled.  Returns whether a schedule was found.
        """
        db = self._session_factory()
        to_revoke: List[str] = []
        try:
            schedules = (
                db.query(GenerationJob)
                .filter(
                    GenerationJob.user_id == user_id,
                    GenerationJob.kind == JobKind.CONTINUOUS,
                    GenerationJob.repeat_every_ms.isnot(None),
                )
                .all()
            )
            for job in schedules:
                if job.state == JobState.ACTIVE:
                    job.repeat_every_ms = None
                    job.next_run_at = None
                else:
                    if job.task_id:
                        to_revoke.append(job.task_id)
                    db.delete(job)
            db.commit()
        finally:
            db.close()

        for task_id in to_revoke:
            self._dispatcher.revoke(task_id)
        if schedules:
            logger.info("Stopped continuous generation for user %s", user_id)
        return bool(schedules)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> Optional[GenerationJob]:
        db = self._session_factory()
        try:
            job = db.get(GenerationJob, job_id)
            if job is not None:
                db.expunge(job)
            return job
        finally:
            db.close()

    def get_user_jobs(self, user_id: str) -> List[GenerationJob]:
        """Every job of the user, newest first."""
        db = self._session_factory()
        try:
            jobs = (
                db.query(GenerationJob)
                .filter(GenerationJob.user_id == user_id)
                .order_by(GenerationJob.created_at.desc())
                .all()
            )
            db.expunge_all()
            return jobs
        finally:
            db.close()

    def live_jobs_for_user(self, user_id: str) -> List[GenerationJob]:
        """Waiting, active or delayed jobs of the user."""
        return [job for job in self.get_user_jobs(user_id) if job.state in LIVE_STATES]

    def metrics(self) -> Dict[str, int]:
        db = self._session_factory()
        try:
            counts = {state.value: 0 for state in JobState}
            for state in JobState:
                counts[state.value] = db.query(GenerationJob).filter(GenerationJob.state == state).count()
            counts["total"] = sum(counts.values())
            return counts
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Worker bookkeeping
    # ------------------------------------------------------------------

    def mark_active(self, job_id: str, delivery_id: Optional[str] = None) -> Optional[GenerationJob]:
        """Claim a delivered job.

        Returns None when the job was removed or already finished, or when the
        delivery is stale: ``delivery_id`` is not the broker task the row is
        waiting for or, without a delivery id, the next occurrence of a
        recurring job is not due yet.  Retries keep their task id.
        """
        db = self._session_factory()
        try:
            job = db.get(GenerationJob, job_id)
            if job is None or job.state in (JobState.COMPLETED, JobState.FAILED):
                return None
            if delivery_id is not None and job.task_id is not None and delivery_id != job.task_id:
                logger.warning("Dropping stale delivery %s of job %s (expecting %s)", delivery_id, job_id, job.task_id)
                return None
            if delivery_id is None and self._occurrence_not_due(job):
                logger.warning("Dropping early delivery of job %s, next run at %s", job_id, job.next_run_at)
                return None
            if job.state == JobState.ACTIVE:
                logger.warning("Job %s was active when redelivered, picking it up again", job_id)
            job.state = JobState.ACTIVE
            job.attempts_made += 1
            job.progress = 0.0
            job.processed_at = datetime.utcnow()
            job.next_run_at = None
            db.commit()
            db.refresh(job)
            db.expunge(job)
            return job
        finally:
            db.close()

    def update_progress(self, job_id: str, progress: float) -> None:
        db = self._session_factory()
        try:
            job = db.get(GenerationJob, job_id)
            if job is not None:
                job.progress = max(0.0, min(100.0, float(progress)))
                db.commit()
        finally:
            db.close()

    def mark_completed(self, job_id: str, result: dict) -> Optional[GenerationJob]:
        """Finish a run.  A recurring job goes back to ``delayed`` and its next occurrence is queued."""
        db = self._session_factory()
        try:
            job = db.get(GenerationJob, job_id)
            if job is None:
                logger.info("Job %s was removed while running, dropping its result", job_id)
                return None
            job.progress = 100.0
            job.result = result
            job.failed_reason = None
            job.finished_at = datetime.utcnow()
            if job.is_recurring:
                job.runs_completed += 1
                self._schedule_next_occurrence(job)
            else:
                job.state = JobState.COMPLETED
            db.commit()
            self._prune_completed(db)
            db.refresh(job)
            db.expunge(job)
        finally:
            db.close()

        if job.is_recurring:
            return self._dispatch(job.id, countdown=job.repeat_every_ms / 1000, priority=job.priority)
        return job

    def record_failure(self, job_id: str, reason: str, retryable: bool = True) -> Optional[float]:
        """Book a failed attempt.

        Returns the delay in seconds before the job should be retried, or None
        when it must not be retried (attempts exhausted, not retryable, or the
        job was removed).  An exhausted recurring job only loses this
        occurrence; its next occurrence is queued as usual.
        """
        db = self._session_factory()
        try:
            job = db.get(GenerationJob, job_id)
            if job is None:
                return None
            job.failed_reason = reason[:2000]
            if retryable and job.attempts_made < job.max_attempts:
                delay = backoff_delay(job.attempts_made, self.backoff_seconds)
                job.state = JobState.DELAYED
                job.next_run_at = datetime.utcnow() + timedelta(seconds=delay)
                db.commit()
                logger.warning("Job %s attempt %d failed, retrying in %.0fs: %s", job_id, job.attempts_made, delay, reason)
                return delay

            if job.is_recurring:
                self._schedule_next_occurrence(job)
                db.commit()
                logger.error("Continuous job %s occurrence failed, next run at %s: %s", job_id, job.next_run_at, reason)
                reschedule = True
            else:
                job.state = JobState.FAILED
                job.finished_at = datetime.utcnow()
                db.commit()
                logger.error("Job %s failed after %d attempts: %s", job_id, job.attempts_made, reason)
                reschedule = False
            countdown = (job.repeat_every_ms or 0) / 1000
            priority = job.priority
        finally:
            db.close()

        if reschedule:
            self._dispatch(job_id, countdown=countdown, priority=priority)
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_job(self, job_id: str, kind: JobKind, payload: JobPayload, priority: int) -> GenerationJob:
        return GenerationJob(
            id=job_id,
            kind=kind,
            user_id=payload.user_id,
            author_id=payload.author_id,
            config=payload.config.to_payload(),
            priority=priority,
            state=JobState.WAITING,
            attempts_made=0,
            max_attempts=self.max_attempts,
            progress=0.0,
            runs_completed=0,
            created_at=datetime.utcnow(),
        )

    @staticmethod
    def _occurrence_not_due(job: GenerationJob) -> bool:
        """Recurring job waiting for its next occurrence (not a retry) whose time has not come."""
        return (
            job.is_recurring
            and job.state == JobState.DELAYED
            and job.attempts_made == 0
            and job.next_run_at is not None
            and job.next_run_at > datetime.utcnow()
        )

    @staticmethod
    def _schedule_next_occurrence(job: GenerationJob) -> None:
        job.state = JobState.DELAYED
        job.attempts_made = 0
        job.next_run_at = datetime.utcnow() + timedelta(milliseconds=job.repeat_every_ms)

    def _dispatch(self, job_id: str, *, countdown: float, priority: int) -> GenerationJob:
        """Hand the job to the broker and remember the task id."""
        try:
            task_id = self._dispatcher.dispatch(job_id, countdown=countdown, priority=priority)
        except Exception as exc:
            logger.error("Dispatching job %s failed: %s", job_id, exc, exc_info=True)
            self._set_failed(job_id, f"Enqueue failed: {exc}")
            raise

        db = self._session_factory()
        try:
            job = db.get(GenerationJob, job_id)
            if job is None:
                raise JobNotFoundError(f"Job {job_id} disappeared while being dispatched")
            job.task_id = task_id
            db.commit()
            db.refresh(job)
            db.expunge(job)
            return job
        finally:
            db.close()

    def _set_failed(self, job_id: str, reason: str) -> None:
        db = self._session_factory()
        try:
            job = db.get(GenerationJob, job_id)
            if job is not None:
                job.state = JobState.FAILED
                job.failed_reason = reason
                job.finished_at = datetime.utcnow()
                db.commit()
        finally:
            db.close()

    def _prune_completed(self, db) -> None:
        """Keep only the newest ``completed_retained`` completed jobs; failed jobs are never pruned."""
        stale_ids = [
            row.id
            for row in db.query(GenerationJob.id)
            .filter(GenerationJob.state == JobState.COMPLETED)
            .order_by(GenerationJob.finished_at.desc(), GenerationJob.created_at.desc())
            .offset(self.completed_retained)
            .all()
        ]
        if stale_ids:
            db.query(GenerationJob).filter(GenerationJob.id.in_(stale_ids)).delete(synchronize_session=False)
            db.commit()
            logger.debug("Pruned %d completed jobs", len(stale_ids))
