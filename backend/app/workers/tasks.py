"""Celery task definitions."""

from celery import Celery, Task
from celery.signals import worker_process_init, worker_shutdown
import logging

from app.config import settings
from app.db.database import SessionLocal, engine
from app.db.redis_client import close_redis, get_redis
from app.services.blog_generation import BlogGenerationEngine
from app.services.blog_posts import BlogPostStore
from app.services.generation_status import StatusStore
from app.services.job_queue import BATCH_PRIORITY, JobQueue, continuous_interval_ms
from app.services.progress_store import ProgressStore
from app.services.tmdb import TMDbCatalog
from app.workers.processor import process_generation_job
from ..logging_config import setup_logging as setup_app_logging

# Ensure DB schema exists when the worker process starts.  This way we do not
# depend on the FastAPI container running first (handy during local dev)
from app.db.base import Base

# Creating tables is a no-op if they already exist (and very fast).
Base.metadata.create_all(bind=engine)

# --- Logger Setup ---
setup_app_logging("worker")
logger = logging.getLogger(__name__)

QUEUE_NAME = "blog-generation"
# Redis hands an unacknowledged message to another worker after this many
# seconds, so it must exceed the longest countdown (one post per hour).
VISIBILITY_TIMEOUT = 2 * continuous_interval_ms(1) // 1000


# --- Celery Application Setup ---
celery_app = Celery(
    "blog_generation",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=['app.workers.tasks']
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_default_queue=QUEUE_NAME,
    task_track_started=True,
    # A job is acknowledged only once it finished, so a worker that dies
    # mid-job leaves the message to be picked up again.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.WORKER_CONCURRENCY,
    # Redis priorities: 0 is served first, batch=1 before continuous=2.
    broker_transport_options={
        "priority_steps": list(range(10)),
        "sep": ":",
        "queue_order_strategy": "priority",
        "visibility_timeout": VISIBILITY_TIMEOUT,
    },
)


class CeleryDispatcher:
    """Queue deliveries through the Celery broker."""

    def dispatch(self, job_id: str, *, countdown: float = 0.0, priority: int = BATCH_PRIORITY) -> str:
        result = generate_blog_posts_task.apply_async(
            args=[job_id],
            countdown=countdown or None,
            priority=priority,
        )
        logger.debug("Dispatched job %s as task %s (countdown=%s, priority=%s)", job_id, result.id, countdown, priority)
        return result.id

    def revoke(self, task_id: str) -> None:
        celery_app.control.revoke(task_id)


def build_status_store() -> StatusStore:
    return StatusStore(get_redis(), ttl_seconds=settings.STATUS_TTL_SECONDS)


def build_job_queue() -> JobQueue:
    return JobQueue(SessionLocal, CeleryDispatcher())


def build_engine(status_store: StatusStore) -> BlogGenerationEngine:
    return BlogGenerationEngine(
        catalog=TMDbCatalog(),
        post_store=BlogPostStore(SessionLocal),
        progress_store=ProgressStore(SessionLocal),
        status_store=status_store,
    )


class BaseGenerationTask(Task):
    """Base Celery Task with call/outcome logging."""
    abstract = True

    def __call__(self, *args, **kwargs):
        logger.info("Task %s [%s] called with args: %s", self.name, self.request.id, args)
        return super().__call__(*args, **kwargs)

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        logger.warning("Task %s [%s] will be retried: %s", self.name, task_id, exc)
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        # The job row was already updated by JobQueue.record_failure.
        logger.error("Task %s [%s] failed: %s", self.name, task_id, exc, exc_info=einfo)
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):
        logger.info("Task %s [%s] completed successfully. Result: %s", self.name, task_id, retval)
        super().on_success(retval, task_id, args, kwargs)


# --- Blog Generation Task ---
@celery_app.task(
    name="generate_blog_posts_task",
    base=BaseGenerationTask,
    bind=True,
    rate_limit=settings.WORKER_RATE_LIMIT,
    max_retries=None,
)
def generate_blog_posts_task(self, job_id: str):
    queue = build_job_queue()
    status_store = build_status_store()
    try:
        return process_generation_job(
            job_id,
            queue=queue,
            engine=build_engine(status_store),
            status_store=status_store,
            delivery_id=self.request.id,
        )
    except Exception as exc:
        delay = queue.record_failure(job_id, str(exc), retryable=getattr(exc, "retryable", True))
        if delay is None:
            raise
        raise self.retry(exc=exc, countdown=delay)


# --- Worker lifecycle ---
@worker_process_init.connect
def _reset_connections(**_kwargs):
    # Pooled connections must not be shared with the parent after fork.
    engine.dispose(close=False)


@worker_shutdown.connect
def _release_resources(**_kwargs):
    logger.info("Worker shutting down, releasing database and Redis connections")
    close_redis()
    engine.dispose()


def worker_main() -> None:
    """Entry point of the ``blog-worker`` console script."""
    celery_app.worker_main([
        "worker",
        "--loglevel=INFO",
        f"--concurrency={settings.WORKER_CONCURRENCY}",
        "-Q", QUEUE_NAME,
    ])


logger.info("Celery tasks defined and logging configured.")
