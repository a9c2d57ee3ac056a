import pytest
import httpx
from unittest.mock import MagicMock, patch

from app.services.errors import CatalogError
from app.services import tmdb
from app.services.tmdb import CatalogItem, TMDbCatalog, listing_endpoint


def _response(payload):
    mock_response = MagicMock()
    mock_response.json.return_value = payload
    mock_response.raise_for_status = MagicMock()
    return mock_response


@pytest.mark.parametrize(
    "media_type, sort_by, expected",
    [
        ("movie", "popular", "/movie/popular"),
        ("movie", "now_playing", "/movie/now_playing"),
        ("tv", "top_rated", "/tv/top_rated"),
        ("tv", "now_playing", "/tv/on_the_air"),
        ("tv", "upcoming", "/tv/on_the_air"),
        ("movie", "trending_day", "/trending/movie/day"),
        ("tv", "trending_week", "/trending/tv/week"),
    ],
)
def test_listing_endpoint(media_type, sort_by, expected):
    assert listing_endpoint(media_type, sort_by) == expected


def test_listing_endpoint_unknown_media_type():
    with pytest.raises(ValueError):
        listing_endpoint("podcast", "popular")


@patch("httpx.Client.get")
def test_fetch_page(mock_get):
    mock_get.return_value = _response({
        "page": 2,
        "total_pages": 40,
        "results": [
            {"id": 1, "name": "Show A", "vote_average": 8.1, "first_air_date": "2019-01-01", "genre_ids": [18]},
            {"id": 2, "title": "Movie B", "vote_average": 6.0, "release_date": "2020-03-03", "adult": True},
        ],
    })

    page = TMDbCatalog(api_key="key", base_url="https://tmdb.test/3").fetch_page("tv", "top_rated", 2)

    assert page.total_pages == 40
    assert [item.title for item in page.items] == ["Show A", "Movie B"]
    assert page.items[0].release_year == 2019
    assert page.items[1].adult is True
    args, kwargs = mock_get.call_args
    assert args[0] == "https://tmdb.test/3/tv/top_rated"
    assert kwargs["params"]["page"] == 2
    assert kwargs["params"]["api_key"] == "key"


@patch("httpx.Client.get")
def test_fetch_details_keeps_top_ten_cast(mock_get):
    cast = [{"name": f"Actor {i}", "character": f"Role {i}", "profile_path": None} for i in range(15)]
    mock_get.return_value = _response({
        "id": 9,
        "title": "Movie C",
        "genres": [{"id": 18, "name": "Drama"}, {"id": 35, "name": "Comedy"}],
        "credits": {"cast": cast},
    })

    item = TMDbCatalog(api_key="key").fetch_details("movie", 9)

    assert item.genres == ["Drama", "Comedy"]
    assert item.genre_ids == [18, 35]
    assert len(item.cast) == 10
    assert mock_get.call_args.kwargs["params"]["append_to_response"] == "credits"


def test_missing_api_key_is_not_retryable(monkeypatch):
    monkeypatch.setattr(tmdb.settings, "TMDB_API_KEY", "")

    with pytest.raises(CatalogError) as exc_info:
        TMDbCatalog().fetch_page("movie", "popular", 1)
    assert exc_info.value.retryable is False


@pytest.mark.parametrize("code, retryable", [(401, False), (429, True), (500, True)])
@patch("httpx.Client.get")
def test_http_errors_map_to_catalog_error(mock_get, code, retryable):
    request = httpx.Request("GET", "https://tmdb.test/3/movie/popular")
    mock_get.side_effect = httpx.HTTPStatusError("error", request=request, response=httpx.Response(code, request=request))

    with pytest.raises(CatalogError) as exc_info:
        TMDbCatalog(api_key="key").fetch_page("movie", "popular", 1)
    assert exc_info.value.retryable is retryable


@patch("httpx.Client.get")
def test_network_error_is_retryable(mock_get):
    mock_get.side_effect = httpx.ConnectError("refused", request=httpx.Request("GET", "https://tmdb.test"))

    with pytest.raises(CatalogError) as exc_info:
        TMDbCatalog(api_key="key").fetch_page("movie", "popular", 1)
    assert exc_info.value.retryable is True


def test_release_year_handles_missing_dates():
    assert CatalogItem(id=1, title="X", release_date=None).release_year is None
    assert CatalogItem(id=1, title="X", release_date="").release_year is None
