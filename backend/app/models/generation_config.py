"""Pydantic value objects describing a generation request."""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

MediaType = Literal["movie", "tv"]
SortOption = Literal["popular", "top_rated", "upcoming", "now_playing", "trending_day", "trending_week"]
GenerationMode = Literal["batch", "continuous"]


class BlogCategory(str, Enum):
    REVIEW = "review"
    NEWS = "news"
    GUIDE = "guide"
    ANALYSIS = "analysis"
    RECOMMENDATION = "recommendation"
    COMPARISON = "comparison"


MAX_BATCH_COUNT = 50
MAX_POSTS_PER_HOUR = 10


class GenerationConfig(BaseModel):
    """What to generate and how fast.

    Accepts both the camelCase keys sent by the admin dashboard and the
    snake_case attribute names.  ``count`` is only checked in batch mode and
    ``posts_per_hour`` only in continuous mode, matching what each mode
    actually consumes.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: MediaType = "movie"
    sort_by: SortOption = "popular"
    mode: GenerationMode = "batch"
    count: int = 5
    posts_per_hour: int = 1
    min_rating: Optional[float] = Field(default=None, ge=0, le=10)
    include_adult: bool = False
    genres: Optional[List[int]] = None
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    ai_model: Optional[str] = None
    api_key: Optional[str] = None
    category: BlogCategory = BlogCategory.REVIEW

    @model_validator(mode="after")
    def _check_mode_limits(self) -> "GenerationConfig":
        if self.mode == "batch" and not 1 <= self.count <= MAX_BATCH_COUNT:
            raise ValueError(f"Count must be between 1 and {MAX_BATCH_COUNT} for batch mode")
        if self.mode == "continuous" and not 1 <= self.posts_per_hour <= MAX_POSTS_PER_HOUR:
            raise ValueError(f"Posts per hour must be between 1 and {MAX_POSTS_PER_HOUR} for continuous mode")
        if self.year_from and self.year_to and self.year_from > self.year_to:
            raise ValueError("yearFrom must not be after yearTo")
        return self

    @property
    def target_count(self) -> int:
        """Posts one job run should produce."""
        return self.count if self.mode == "batch" else 1

    def to_payload(self) -> dict:
        """JSON-safe dict stored on the job row (API key included, never logged)."""
        return self.model_dump(mode="json")

    def describe(self) -> str:
        """Loggable summary without the API key."""
        return f"{self.mode} {self.type}/{self.sort_by} ({self.category.value})"


class JobPayload(BaseModel):
    """Everything a worker needs to run one job."""

    user_id: str
    author_id: str
    config: GenerationConfig
