from app.models.generation_config import BlogCategory
from app.services.blog_posts import build_post, reading_time, slugify, unique_slug
from app.services.prompts import build_article_prompt, clean_article_html, parse_meta
from app.services.tmdb import CatalogItem

MEDIA = CatalogItem(
    id=42,
    title="Dune: Part Two",
    rating=8.3,
    release_date="2024-02-27",
    overview="Paul Atreides unites with the Fremen.",
    backdrop_path="/dune.jpg",
    genres=["Science Fiction"],
    cast=[{"name": "Timothée Chalamet", "character": "Paul Atreides"}],
)


def test_slugify():
    assert slugify("Dune: Part Two") == "dune-part-two"
    assert slugify("  Amélie -- Review!! ") == "am-lie-review"


def test_unique_slug_appends_counter():
    taken = {"dune-part-two", "dune-part-two-1"}
    assert unique_slug("Dune: Part Two", lambda slug: slug not in taken) == "dune-part-two-2"
    assert unique_slug("Fresh", lambda slug: slug not in taken) == "fresh"


def test_unique_slug_fallback_for_symbol_titles():
    assert unique_slug("!!!", lambda slug: True, fallback="movie-42") == "movie-42"


def test_reading_time_ignores_markup():
    assert reading_time("<p>short</p>") == 1
    assert reading_time("<p>" + "word " * 200 + "</p>") == 1
    assert reading_time("<p>" + "word " * 201 + "</p>") == 2


def test_parse_meta_reads_all_fields():
    text = (
        "TITLE: Dune Part Two Review\n"
        "META: A sweeping sequel.\n"
        "EXCERPT: Villeneuve returns to Arrakis.\n"
        "KEYWORDS: [dune, sci-fi, villeneuve]\n"
        "TAGS: [sci-fi, epic]\n"
    )
    meta = parse_meta(text, MEDIA)

    assert meta.title == "Dune Part Two Review"
    assert meta.meta_description == "A sweeping sequel."
    assert meta.keywords == ["dune", "sci-fi", "villeneuve"]
    assert meta.tags == ["sci-fi", "epic"]


def test_parse_meta_falls_back_to_media():
    meta = parse_meta("Sorry, I cannot help with that.", MEDIA)

    assert meta.title == "Dune: Part Two - Review and Analysis"
    assert meta.meta_description == MEDIA.overview
    assert meta.keywords == []


def test_clean_article_html_strips_code_fence():
    assert clean_article_html("```html\n<h2>Hi</h2>\n```") == "<h2>Hi</h2>"


def test_article_prompt_depends_on_category_and_type():
    prompt = build_article_prompt(MEDIA, "tv", BlogCategory.GUIDE)
    assert 'viewing guide for the TV show "Dune: Part Two"' in prompt
    assert "Timothée Chalamet as Paul Atreides" in prompt


def test_build_post_copies_media_fields():
    meta = parse_meta("TITLE: Dune Review", MEDIA)
    post = build_post(MEDIA, "movie", "<p>Body</p>", meta, "dune-review", "author-1", BlogCategory.REVIEW, "job-1")

    assert post.media_id == 42
    assert post.media_genres == ["Science Fiction"]
    assert post.featured_image.endswith("/dune.jpg")
    assert post.status == "published"
    assert post.source_job_id == "job-1"
    assert post.reading_time == 1
