"""Prompt templates for blog articles and their SEO metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List

from app.models.generation_config import BlogCategory
from app.services.tmdb import CatalogItem

CATEGORY_INTROS = {
    BlogCategory.REVIEW: 'Write a detailed, engaging blog post review for the {kind} "{title}".',
    BlogCategory.NEWS: 'Write a news article about the {kind} "{title}".',
    BlogCategory.GUIDE: 'Write a comprehensive viewing guide for the {kind} "{title}".',
    BlogCategory.ANALYSIS: 'Write an in-depth analysis of the {kind} "{title}".',
    BlogCategory.RECOMMENDATION: 'Write a recommendation post for the {kind} "{title}".',
    BlogCategory.COMPARISON: 'Write a comparison piece featuring the {kind} "{title}".',
}

ARTICLE_TEMPLATE = """{intro}

Movie/Show Details:
- Title: {title}
- Release Date: {release_date}
- Rating: {rating}/10
- Genres: {genres}
- Overview: {overview}
- Cast: {cast}

Requirements:
1. Write in an engaging, conversational tone
2. Include an introduction that hooks the reader
3. Discuss the plot WITHOUT major spoilers
4. Talk about what makes it worth watching
5. Include a conclusion with a recommendation
6. Use HTML formatting: <h2>, <h3>, <p>, <strong>, <em>, <ul>, <li>
7. Make it 800-1200 words

Return ONLY the HTML content, no markdown code blocks.
"""

META_TEMPLATE = """For the {kind} "{title}", generate:
1. SEO Title (50-60 characters, engaging and clickable)
2. Meta Description (150-160 characters)
3. Excerpt (200-250 characters, exciting summary)
4. 5-7 relevant keywords (comma-separated)
5. 3-5 tags (comma-separated, one or two words each)

Format your response EXACTLY as:
TITLE: [your title]
META: [your meta description]
EXCERPT: [your excerpt]
KEYWORDS: [keyword1, keyword2, keyword3, ...]
TAGS: [tag1, tag2, tag3, ...]
"""

_CODE_FENCE = re.compile(r"^```(?:html)?\s*|\s*```$")


@dataclass
class ArticleMeta:
    title: str
    meta_description: str
    excerpt: str
    keywords: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


def _kind(media_type: str) -> str:
    return "TV show" if media_type == "tv" else "movie"


def build_article_prompt(media: CatalogItem, media_type: str, category: BlogCategory) -> str:
    kind = _kind(media_type)
    cast = ", ".join(
        f"{c['name']} as {c['character']}" if c.get("character") else str(c.get("name"))
        for c in media.cast
    )
    return ARTICLE_TEMPLATE.format(
        intro=CATEGORY_INTROS[category].format(kind=kind, title=media.title),
        title=media.title,
        release_date=media.release_date or "unknown",
        rating=media.rating,
        genres=", ".join(media.genres) or "unknown",
        overview=media.overview or "n/a",
        cast=cast or "n/a",
    )


def build_meta_prompt(media: CatalogItem, media_type: str) -> str:
    return META_TEMPLATE.format(kind=_kind(media_type), title=media.title)


def clean_article_html(text: str) -> str:
    """Strip the markdown code fence some models wrap around HTML."""
    return _CODE_FENCE.sub("", text.strip()).strip()


def _field(text: str, name: str) -> str:
    match = re.search(rf"^\s*{name}:\s*(.+)$", text, re.MULTILINE | re.IGNORECASE)
    return match.group(1).strip().strip("[]").strip() if match else ""


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_meta(text: str, media: CatalogItem) -> ArticleMeta:
    """Parse the TITLE/META/EXCERPT/KEYWORDS/TAGS answer, falling back to catalog data."""
    overview = media.overview or media.title
    return ArticleMeta(
        title=_field(text, "TITLE") or f"{media.title} - Review and Analysis",
        meta_description=_field(text, "META") or overview[:160],
        excerpt=_field(text, "EXCERPT") or overview[:250],
        keywords=_split_list(_field(text, "KEYWORDS")),
        tags=_split_list(_field(text, "TAGS")),
    )
