"""Wrapper around the TMDb REST API used as the generation catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.services.errors import CatalogError

logger = logging.getLogger(__name__)

# Listing endpoints per media type.  TV has no "now playing"/"upcoming"
# listing, the closest one is "on the air".
_LISTING_ENDPOINTS: Dict[str, Dict[str, str]] = {
    "movie": {
        "popular": "/movie/popular",
        "top_rated": "/movie/top_rated",
        "upcoming": "/movie/upcoming",
        "now_playing": "/movie/now_playing",
    },
    "tv": {
        "popular": "/tv/popular",
        "top_rated": "/tv/top_rated",
        "upcoming": "/tv/on_the_air",
        "now_playing": "/tv/on_the_air",
    },
}


@dataclass
class CatalogItem:
    """One movie or TV show as returned by a listing endpoint."""

    id: int
    title: str
    rating: float = 0.0
    release_date: Optional[str] = None
    genre_ids: List[int] = field(default_factory=list)
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    adult: bool = False
    genres: List[str] = field(default_factory=list)
    cast: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def release_year(self) -> Optional[int]:
        if self.release_date and len(self.release_date) >= 4 and self.release_date[:4].isdigit():
            return int(self.release_date[:4])
        return None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CatalogItem":
        return cls(
            id=int(data["id"]),
            title=data.get("title") or data.get("name") or f"#{data['id']}",
            rating=float(data.get("vote_average") or 0.0),
            release_date=data.get("release_date") or data.get("first_air_date") or None,
            genre_ids=list(data.get("genre_ids") or [g["id"] for g in data.get("genres") or []]),
            overview=data.get("overview") or "",
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            adult=bool(data.get("adult", False)),
            genres=[g["name"] for g in data.get("genres") or []],
        )


@dataclass
class CatalogPage:
    items: List[CatalogItem]
    page: int
    total_pages: int


def listing_endpoint(media_type: str, sort_by: str) -> str:
    """Return the TMDb path for a (media type, sort option) listing."""
    if sort_by in ("trending_day", "trending_week"):
        window = "day" if sort_by == "trending_day" else "week"
        return f"/trending/{media_type}/{window}"
    try:
        endpoints = _LISTING_ENDPOINTS[media_type]
    except KeyError:
        raise ValueError(f"Unsupported media type: {media_type}") from None
    return endpoints.get(sort_by, endpoints["popular"])


class TMDbCatalog:
    """Synchronous TMDb client, one instance per job run."""

    def __init__(self, api_key: str | None = None, base_url: str | None = None, timeout: float = 15.0) -> None:
        self._api_key = api_key or settings.TMDB_API_KEY
        self._base_url = (base_url or settings.TMDB_BASE_URL).rstrip("/")
        self._timeout = timeout

    def fetch_page(self, media_type: str, sort_by: str, page: int) -> CatalogPage:
        endpoint = listing_endpoint(media_type, sort_by)
        data = self._get(endpoint, {"page": page, "language": "en-US"})
        items = [CatalogItem.from_api(raw) for raw in data.get("results") or []]
        total_pages = int(data.get("total_pages") or page)
        logger.debug("Fetched %s page %s: %d items of %d pages", endpoint, page, len(items), total_pages)
        return CatalogPage(items=items, page=page, total_pages=total_pages)

    def fetch_details(self, media_type: str, media_id: int) -> CatalogItem:
        """Full record for one title including genre names and top-10 cast."""
        data = self._get(f"/{media_type}/{media_id}", {"append_to_response": "credits"})
        item = CatalogItem.from_api(data)
        credits = data.get("credits") or {}
        item.cast = [
            {"name": c.get("name"), "character": c.get("character"), "profile_path": c.get("profile_path")}
            for c in (credits.get("cast") or [])[:10]
        ]
        return item

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self._api_key:
            raise CatalogError("TMDb API key is not configured (TMDB_API_KEY).", retryable=False)
        query = {"api_key": self._api_key, **params}
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.get(f"{self._base_url}{path}", params=query)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.error("TMDb request %s failed with HTTP %s", path, status_code)
            if status_code == 401:
                raise CatalogError("Invalid TMDb API key.", retryable=False) from exc
            raise CatalogError(f"TMDb request {path} failed with HTTP {status_code}") from exc
        except httpx.RequestError as exc:
            logger.error("TMDb request %s failed: %s", path, exc)
            raise CatalogError(f"TMDb request {path} failed: {exc}") from exc
