"""Turns one generation job into persisted blog posts, resuming where the
previous run for the same (user, media type, sort) listing stopped.

Per item the engine performs, strictly in order:

1. check the stop token;
2. make sure the current filtered listing page is loaded (advancing pages
   when one is used up);
3. skip media that already has a post, or recognise a post written by an
   earlier attempt of the same run;
4. fetch details, ask the content generator for the article and its
   metadata, write the post;
5. advance the cursor, bump ``total_generated`` and persist it, update the
   live status and report job progress.

Collaborator failures are not caught here; they propagate to the worker so
the queue can retry the whole job.  Posts carry the run key, so a retried
attempt counts what its predecessors already wrote and only produces the
remainder; it neither skips nor duplicates items.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from app.config import settings
from app.models.generation_config import GenerationConfig, JobPayload
from app.services.blog_posts import BlogPostStore, build_post, unique_slug
from app.services.generation_status import GenerationStatus, StatusStore
from app.services.llm import ContentGenerator, create_content_generator
from app.services.progress_store import ProgressStore
from app.services.prompts import build_article_prompt, build_meta_prompt, clean_article_html, parse_meta
from app.services.tmdb import CatalogItem, CatalogPage, TMDbCatalog

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
GeneratorFactory = Callable[[Optional[str], Optional[str]], ContentGenerator]


@dataclass
class GenerationOutcome:
    """What one run achieved; stored as the job result."""

    requested: int
    generated: int = 0
    skipped: int = 0
    stopped: bool = False
    exhausted: bool = False
    post_ids: List[int] = field(default_factory=list)

    @property
    def shortfall(self) -> int:
        return max(0, self.requested - self.generated)

    def to_dict(self) -> dict:
        return {
            "requested": self.requested,
            "generated": self.generated,
            "skipped": self.skipped,
            "shortfall": self.shortfall,
            "stopped": self.stopped,
            "exhausted": self.exhausted,
            "post_ids": self.post_ids,
        }


def matches_filters(item: CatalogItem, config: GenerationConfig) -> bool:
    """Client-side listing filters: rating floor, adult flag, genres, year range."""
    if config.min_rating is not None and item.rating < config.min_rating:
        return False
    if item.adult and not config.include_adult:
        return False
    if config.genres and not set(config.genres) & set(item.genre_ids):
        return False
    if config.year_from or config.year_to:
        year = item.release_year
        if year is None:
            return False
        if config.year_from and year < config.year_from:
            return False
        if config.year_to and year > config.year_to:
            return False
    return True


class _Cursor:
    """In-memory position in the filtered listing."""

    def __init__(self, page: int, index: int) -> None:
        self.page = page
        self.index = index
        self.listing: Optional[CatalogPage] = None
        self.items: Optional[List[CatalogItem]] = None

    def next_page(self) -> None:
        self.page += 1
        self.index = 0
        self.items = None

    def advance(self) -> None:
        """Move past the current item, rolling over to the next page when this one is used up."""
        self.index += 1
        if self.items is not None and self.index >= len(self.items):
            self.next_page()


class BlogGenerationEngine:
    """Runs one job: batch (``count`` posts) or one continuous occurrence (one post)."""

    def __init__(
        self,
        *,
        catalog: TMDbCatalog,
        post_store: BlogPostStore,
        progress_store: ProgressStore,
        status_store: StatusStore,
        generator_factory: GeneratorFactory = create_content_generator,
        max_empty_pages: int | None = None,
    ) -> None:
        self._catalog = catalog
        self._posts = post_store
        self._progress = progress_store
        self._status = status_store
        self._generator_factory = generator_factory
        self._max_empty_pages = max_empty_pages or settings.MAX_EMPTY_PAGES

    def run(
        self,
        payload: JobPayload,
        *,
        run_key: str,
        token,
        report_progress: Optional[ProgressCallback] = None,
    ) -> GenerationOutcome:
        """Generate posts for ``payload``.

        Args:
            payload: user ids and the validated configuration.
            run_key: identifies this run across retries; stored on every post
                as ``source_job_id``.
            token: object with a ``cancelled`` attribute, checked before each item.
            report_progress: called with 0-100 after every produced post.
        """
        config = payload.config
        user_id = payload.user_id
        target = config.target_count
        generator = self._generator_factory(config.ai_model, config.api_key)

        record = self._progress.get(user_id, config.type, config.sort_by)
        cursor = _Cursor(record.current_page, record.current_index) if record else _Cursor(1, 0)
        total_generated = record.total_generated if record else 0
        logger.info(
            "Run %s for user %s: %s, resuming at page %s index %s (%s generated so far)",
            run_key, user_id, config.describe(), cursor.page, cursor.index, total_generated,
        )

        status = self._begin_status(payload, run_key)
        earlier_ids = self._posts_of_earlier_attempts(run_key, record)
        outcome = GenerationOutcome(requested=target, generated=len(earlier_ids), post_ids=earlier_ids)
        if earlier_ids:
            logger.info("Run %s resumes with %d posts from earlier attempts", run_key, len(earlier_ids))
            status.add_log(f"Resuming: {len(earlier_ids)} of {target} already written")
            if config.mode == "batch":
                status.completed = len(earlier_ids)
            self._status.save(status)
        saved_position = (cursor.page, cursor.index)
        fetches_without_post = 0

        while outcome.generated < target:
            if token.cancelled:
                outcome.stopped = True
                status.add_log("Generation stopped by user")
                logger.info("Run %s stopped by user after %d posts", run_key, outcome.generated)
                break

            if cursor.items is None:
                if cursor.listing is not None and cursor.page > cursor.listing.total_pages:
                    outcome.exhausted = True
                    break
                if fetches_without_post >= self._max_empty_pages:
                    outcome.exhausted = True
                    break
                cursor.listing = self._catalog.fetch_page(config.type, config.sort_by, cursor.page)
                cursor.items = [item for item in cursor.listing.items if matches_filters(item, config)]
                fetches_without_post += 1

            if cursor.index >= len(cursor.items):
                cursor.next_page()
                continue

            item = cursor.items[cursor.index]
            status.current_title = item.title
            status.add_log(f"Processing: {item.title}")
            self._status.save(status)

            post_id = self._produce(item, payload, generator, run_key, status)
            cursor.advance()
            if post_id is None:
                outcome.skipped += 1
                continue

            fetches_without_post = 0
            outcome.generated += 1
            outcome.post_ids.append(post_id)
            total_generated += 1
            self._progress.upsert(user_id, config.type, config.sort_by, {
                "current_page": cursor.page,
                "current_index": cursor.index,
                "total_generated": total_generated,
                "last_media_id": item.id,
            })
            saved_position = (cursor.page, cursor.index)

            status.completed += 1
            status.last_generated_at = datetime.utcnow()
            status.add_log(f"Created: {item.title} ({outcome.generated}/{target})")
            self._status.save(status)
            if report_progress is not None:
                report_progress(round(100 * outcome.generated / target))

        if outcome.exhausted:
            status.add_log(f"No more eligible items: generated {outcome.generated} of {target}")
            logger.warning("Run %s exhausted the %s listing, shortfall %d", run_key, config.sort_by, outcome.shortfall)
        # Skipped items and ineligible pages move the cursor without a post.
        if (cursor.page, cursor.index) != saved_position:
            self._progress.upsert(user_id, config.type, config.sort_by, {
                "current_page": cursor.page,
                "current_index": cursor.index,
            })

        self._finish_status(status, config, outcome)
        return outcome

    def _posts_of_earlier_attempts(self, run_key: str, record) -> List[int]:
        """Ids of posts a failed attempt of this run wrote and also recorded in the cursor.

        A newest post that is not the cursor's ``last_media_id`` was written
        right before a crash; it is left out so the loop picks it up again
        at the cursor and advances past it.
        """
        posts = self._posts.list_by_source(run_key)
        if posts and (record is None or record.last_media_id != posts[-1].media_id):
            posts = posts[:-1]
        return [post.id for post in posts]

    def _produce(self, item: CatalogItem, payload: JobPayload, generator: ContentGenerator,
                 run_key: str, status: GenerationStatus) -> Optional[int]:
        """Write the post for ``item``; returns its id, or None when the item is skipped."""
        config = payload.config
        existing = self._posts.find_by_media(config.type, item.id)
        if existing is not None:
            if existing.source_job_id == run_key:
                logger.info("Post %s for %s was written by an earlier attempt of %s", existing.id, item.title, run_key)
                return existing.id
            status.skipped += 1
            status.add_log(f"Skipped: {item.title} (already exists)")
            self._status.save(status)
            return None

        details = self._catalog.fetch_details(config.type, item.id)
        content = clean_article_html(generator.generate(build_article_prompt(details, config.type, config.category)))
        meta = parse_meta(generator.generate(build_meta_prompt(details, config.type)), details)
        slug = unique_slug(meta.title, self._posts.is_slug_available, fallback=f"{config.type}-{item.id}")
        post = build_post(details, config.type, content, meta, slug, payload.author_id, config.category, run_key)
        return self._posts.create(post).id

    def _begin_status(self, payload: JobPayload, run_key: str) -> GenerationStatus:
        config = payload.config
        previous = self._status.get(payload.user_id)
        status = GenerationStatus(
            user_id=payload.user_id,
            is_running=True,
            mode=config.mode,
            media_type=config.type,
            sort_by=config.sort_by,
            total=config.target_count,
            job_id=run_key,
            started_at=datetime.utcnow(),
            posts_per_hour=config.posts_per_hour if config.mode == "continuous" else None,
        )
        if config.mode == "continuous" and previous.mode == "continuous" and previous.job_id \
                and previous.job_id.split("#")[0] == run_key.split("#")[0]:
            # Same schedule: counters accumulate across occurrences.
            status.total = previous.total + 1
            status.completed = previous.completed
            status.failed = previous.failed
            status.skipped = previous.skipped
            status.errors = previous.errors
            status.logs = previous.logs
            status.started_at = previous.started_at or status.started_at
        status.add_log(f"Starting {config.describe()} generation (Job: {run_key})")
        self._status.save(status)
        return status

    def _finish_status(self, status: GenerationStatus, config: GenerationConfig, outcome: GenerationOutcome) -> None:
        status.current_title = None
        status.is_running = config.mode == "continuous" and not outcome.stopped
        status.add_log(
            f"Run finished: created {outcome.generated}, skipped {outcome.skipped}"
            + (f", short by {outcome.shortfall}" if outcome.shortfall and not outcome.stopped else "")
        )
        self._status.save(status)
