"""Shared fixtures: in-memory database, a Redis double and fake collaborators."""

from __future__ import annotations

import itertools
import re
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401 - registers tables
from app.db.base import Base
from app.services.blog_posts import BlogPostStore
from app.services.errors import CatalogError
from app.services.generation_status import StatusStore
from app.services.job_queue import JobQueue
from app.services.progress_store import ProgressStore
from app.services.tmdb import CatalogItem, CatalogPage


class FakeRedis:
    """The handful of redis-py calls the status store makes, kept in a dict."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.expiries: Dict[str, Optional[int]] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiries[key] = ex
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expiries.pop(key, None)
        return removed

    def exists(self, *keys):
        return sum(1 for key in keys if key in self.data)


class FakeCatalog:
    """Listing pages keyed by page number; details echo the listing item with genre names."""

    def __init__(self, pages: Dict[int, List[CatalogItem]], total_pages: Optional[int] = None) -> None:
        self.pages = pages
        self.total_pages = total_pages or max(pages)
        self.page_requests: List[int] = []
        self.detail_requests: List[int] = []
        self.fail_details_for: set = set()

    def fetch_page(self, media_type: str, sort_by: str, page: int) -> CatalogPage:
        self.page_requests.append(page)
        return CatalogPage(items=list(self.pages.get(page, [])), page=page, total_pages=self.total_pages)

    def fetch_details(self, media_type: str, media_id: int) -> CatalogItem:
        self.detail_requests.append(media_id)
        if media_id in self.fail_details_for:
            raise CatalogError(f"details for {media_id} unavailable")
        for items in self.pages.values():
            for item in items:
                if item.id == media_id:
                    return CatalogItem(
                        id=item.id,
                        title=item.title,
                        rating=item.rating,
                        release_date=item.release_date,
                        genre_ids=item.genre_ids,
                        overview=item.overview,
                        genres=["Drama"],
                        cast=[{"name": "Lead Actor", "character": "Hero", "profile_path": None}],
                    )
        raise KeyError(media_id)


class FakeGenerator:
    """Returns a short article, or a parseable meta block for the meta prompt."""

    model_id = "fake-model"
    _TITLE_RE = re.compile(r'"(.+?)"')

    def __init__(self) -> None:
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        title = self._TITLE_RE.search(prompt).group(1)
        if "Format your response EXACTLY" in prompt:
            return (
                f"TITLE: {title}\n"
                f"META: All about {title}\n"
                f"EXCERPT: Why {title} matters\n"
                "KEYWORDS: [film, review, streaming]\n"
                "TAGS: [drama, must-watch]\n"
            )
        return f"<h2>{title}</h2><p>{'word ' * 450}</p>"


def make_items(start: int, count: int, **overrides) -> List[CatalogItem]:
    return [
        CatalogItem(
            id=media_id,
            title=overrides.get("title", f"Title {media_id}"),
            rating=overrides.get("rating", 7.5),
            release_date=overrides.get("release_date", "2021-05-01"),
            genre_ids=overrides.get("genre_ids", [18]),
            overview=f"Overview of {media_id}",
        )
        for media_id in range(start, start + count)
    ]


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def status_store(fake_redis):
    return StatusStore(fake_redis, ttl_seconds=3600)


@pytest.fixture
def progress_store(session_factory):
    return ProgressStore(session_factory)


@pytest.fixture
def post_store(session_factory):
    return BlogPostStore(session_factory)


@pytest.fixture
def dispatcher():
    counter = itertools.count(1)
    mock = MagicMock()
    mock.dispatch.side_effect = lambda job_id, **kwargs: f"task-{next(counter)}"
    return mock


@pytest.fixture
def job_queue(session_factory, dispatcher):
    return JobQueue(session_factory, dispatcher, max_attempts=3, backoff_seconds=2.0, completed_retained=100)


@pytest.fixture
def generator():
    return FakeGenerator()
