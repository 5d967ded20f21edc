"""
Web search adapter.

Wraps the Google Custom Search JSON API behind a small protocol so the
search service can be exercised with an in-memory backend. The adapter
restricts each query to one domain with the ``site:`` operator and maps
raw items to plain dicts: ``{title, link, snippet, imageUrl}``.
"""

from __future__ import annotations

from typing import Any, Protocol

import requests

from zoogent.config import (
    GOOGLE_SEARCH_API_KEY,
    GOOGLE_SEARCH_CX,
    GOOGLE_SEARCH_URL,
    SEARCH_MAX_RESULTS,
    SEARCH_TIMEOUT,
    get_logger,
)

logger = get_logger(__name__)


class SearchBackend(Protocol):
    """Anything that can run one domain-restricted web search."""

    def search(self, query: str, site: str, max_results: int) -> list[dict[str, Any]]:
        """
        Return up to ``max_results`` hits for ``query`` on ``site``.

        Each hit is a dict with ``title``, ``link``, ``snippet`` and an
        optional ``imageUrl``.

        Raises:
            TimeoutError: If the request times out.
            ConnectionError: On network or HTTP failure.
        """
        ...


def site_query(query: str, site: str) -> str:
    """Append the site restriction the way a user would type it."""
    return f"{query.strip()} site:{site}"


def _image_url(item: dict[str, Any]) -> str | None:
    images = (item.get("pagemap") or {}).get("cse_image") or []
    if images and isinstance(images[0], dict):
        return images[0].get("src")
    return None


def parse_items(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Map a Custom Search response body to hit dicts; no ``items`` means none."""
    hits = []
    for item in payload.get("items") or []:
        hits.append(
            {
                "title": item.get("title", ""),
                "link": item.get("link", ""),
                "snippet": item.get("snippet", ""),
                "imageUrl": _image_url(item),
            }
        )
    return hits


class GoogleCustomSearchClient:
    """Google Custom Search JSON API client implementing SearchBackend."""

    def __init__(
        self,
        api_key: str | None = None,
        cx: str | None = None,
        timeout: float = SEARCH_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key or GOOGLE_SEARCH_API_KEY
        self.cx = cx or GOOGLE_SEARCH_CX
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.cx)

    def search(self, query: str, site: str, max_results: int) -> list[dict[str, Any]]:
        if not self.is_configured:
            raise ConnectionError(
                "Google Custom Search is not configured "
                "(set GOOGLE_SEARCH_API_KEY and GOOGLE_SEARCH_CX)"
            )

        params = {
            "key": self.api_key,
            "cx": self.cx,
            "q": site_query(query, site),
            "num": max(1, min(max_results, SEARCH_MAX_RESULTS)),
        }
        try:
            response = self._session.get(
                GOOGLE_SEARCH_URL, params=params, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.Timeout as exc:
            raise TimeoutError(f"Search timed out for site {site}: {exc}") from exc
        except requests.RequestException as exc:
            raise ConnectionError(f"Search failed for site {site}: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ConnectionError(f"Search returned non-JSON body for site {site}") from exc

        hits = parse_items(payload)
        logger.debug("Search hits", extra={"site": site, "hits": len(hits)})
        return hits[:max_results]


def get_search_backend() -> SearchBackend:
    """Get the configured search backend."""
    return GoogleCustomSearchClient()


__all__ = [
    "SearchBackend",
    "GoogleCustomSearchClient",
    "get_search_backend",
    "parse_items",
    "site_query",
]
