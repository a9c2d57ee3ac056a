"""Blog post construction and the SQLAlchemy-backed content store."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.models.blog_post import BlogPost
from app.models.generation_config import BlogCategory
from app.services.prompts import ArticleMeta
from app.services.tmdb import CatalogItem

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200

_TAG_RE = re.compile(r"<[^>]*>")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Lower-case, dash-separated ASCII slug (``"Dune: Part Two"`` -> ``"dune-part-two"``)."""
    return _NON_ALNUM_RE.sub("-", title.lower()).strip("-")


def unique_slug(title: str, is_available: Callable[[str], bool], fallback: str = "post") -> str:
    """First free slug among ``base``, ``base-1``, ``base-2``, ..."""
    base = slugify(title) or fallback
    candidate = base
    suffix = 0
    while not is_available(candidate):
        suffix += 1
        candidate = f"{base}-{suffix}"
    return candidate


def reading_time(html: str) -> int:
    """Minutes to read ``html`` at 200 words per minute, never less than one."""
    words = len(_TAG_RE.sub(" ", html).split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def build_post(
    media: CatalogItem,
    media_type: str,
    content: str,
    meta: ArticleMeta,
    slug: str,
    author_id: str,
    category: BlogCategory,
    source_job_id: Optional[str] = None,
) -> BlogPost:
    image = f"{settings.TMDB_IMAGE_BASE_URL}{media.backdrop_path}" if media.backdrop_path else None
    now = datetime.utcnow()
    return BlogPost(
        title=meta.title,
        slug=slug,
        excerpt=meta.excerpt,
        content=content,
        meta_title=meta.title,
        meta_description=meta.meta_description,
        keywords=meta.keywords,
        tags=meta.tags,
        category=category.value,
        reading_time=reading_time(content),
        media_id=media.id,
        media_type=media_type,
        media_title=media.title,
        media_poster_path=media.poster_path,
        media_backdrop_path=media.backdrop_path,
        media_release_date=media.release_date,
        media_genres=media.genres,
        media_rating=media.rating,
        media_overview=media.overview,
        media_cast=media.cast,
        featured_image=image,
        author_id=author_id,
        source_job_id=source_job_id,
        status="published",
        published_at=now,
        created_at=now,
    )


class BlogPostStore:
    """Content store used by the generation engine."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def is_slug_available(self, slug: str) -> bool:
        db = self._session_factory()
        try:
            return db.query(BlogPost.id).filter(BlogPost.slug == slug).first() is None
        finally:
            db.close()

    def find_by_media(self, media_type: str, media_id: int) -> Optional[BlogPost]:
        db = self._session_factory()
        try:
            post = (
                db.query(BlogPost)
                .filter(BlogPost.media_type == media_type, BlogPost.media_id == media_id)
                .order_by(BlogPost.id.asc())
                .first()
            )
            if post is not None:
                db.expunge(post)
            return post
        finally:
            db.close()

    def list_by_source(self, source_job_id: str) -> List[BlogPost]:
        """Posts written under one run key, oldest first."""
        db = self._session_factory()
        try:
            posts = (
                db.query(BlogPost)
                .filter(BlogPost.source_job_id == source_job_id)
                .order_by(BlogPost.id.asc())
                .all()
            )
            db.expunge_all()
            return posts
        finally:
            db.close()

    def create(self, post: BlogPost) -> BlogPost:
        db = self._session_factory()
        try:
            db.add(post)
            db.commit()
            db.refresh(post)
            db.expunge(post)
            logger.info("Created blog post %s (%s)", post.id, post.slug)
            return post
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
