"""
Domain-scoped web search service.

Fans one query out to every allowed domain, normalizes the hits into
SearchResultItem tagged with their domain, and dedupes by title. Domains
are queried concurrently, but results are accumulated in the order the
domains were given so the first-occurrence tie-break is deterministic.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Sequence

from zoogent.adapters.search import SearchBackend, get_search_backend
from zoogent.config import SEARCH_TIMEOUT, get_logger
from zoogent.core.candidates import dedupe_by_title, merge_candidates
from zoogent.core.errors import SearchBackendError
from zoogent.core.models import SearchResultItem

logger = get_logger(__name__)


def to_items(hits: Iterable[dict], domain: str) -> list[SearchResultItem]:
    """Normalize backend hit dicts; hits without title or link are dropped."""
    items = []
    for hit in hits:
        title = str(hit.get("title") or "").strip()
        link = str(hit.get("link") or "").strip()
        if not title or not link:
            continue
        items.append(
            SearchResultItem(
                title=title,
                link=link,
                snippet=str(hit.get("snippet") or "").strip(),
                domain=domain,
                image=hit.get("imageUrl") or hit.get("image") or None,
            )
        )
    return items


class DomainSearchService:
    """Search a query across a list of allowed domains."""

    def __init__(
        self,
        backend: SearchBackend | None = None,
        timeout: float = SEARCH_TIMEOUT,
    ):
        self.backend = backend or get_search_backend()
        self.timeout = timeout

    async def _search_domain(
        self, query: str, domain: str, results_per_domain: int
    ) -> list[SearchResultItem]:
        try:
            hits = await asyncio.wait_for(
                asyncio.to_thread(
                    self.backend.search, query, domain, results_per_domain
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise SearchBackendError(
                f"Search on {domain} timed out after {self.timeout:.1f}s",
                domain=domain,
            ) from TimeoutError(str(exc) or "deadline exceeded")
        except Exception as exc:
            raise SearchBackendError(
                f"Search on {domain} failed: {exc}", domain=domain
            ) from exc
        return to_items(hits, domain)[:results_per_domain]

    async def search(
        self,
        query: str,
        domains: Sequence[str],
        results_per_domain: int,
        tolerate_failures: bool = False,
    ) -> list[SearchResultItem]:
        """
        Run ``query`` on every domain and return a deduplicated candidate set.

        Args:
            query: Search text (the site restriction is added per domain).
            domains: Allowed domains, in tie-break order.
            results_per_domain: Hits requested from each domain.
            tolerate_failures: Log and skip failing domains instead of
                raising. Even then, all domains failing is an error.

        Raises:
            SearchBackendError: On any domain failure (strict mode) or when
                every domain failed (tolerant mode).
        """
        if not domains:
            return []

        outcomes = await asyncio.gather(
            *(self._search_domain(query, d, results_per_domain) for d in domains),
            return_exceptions=True,
        )

        per_domain: list[list[SearchResultItem]] = []
        failures: list[SearchBackendError] = []
        for domain, outcome in zip(domains, outcomes):
            if isinstance(outcome, SearchBackendError):
                failures.append(outcome)
                logger.warning(
                    "Domain search failed: %s",
                    outcome,
                    extra={"domain": domain, "tolerated": tolerate_failures},
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            per_domain.append(outcome)

        if failures and (not tolerate_failures or len(failures) == len(domains)):
            raise failures[0]

        return dedupe_by_title(item for items in per_domain for item in items)

    async def search_many(
        self,
        queries: Sequence[str],
        domains: Sequence[str],
        results_per_domain: int,
        limit: int | None = None,
    ) -> list[SearchResultItem]:
        """
        Search several queries concurrently and union the results.

        Each query tolerates individual domain failures. A query whose
        domains all failed is skipped; if every query failed the first
        error is raised. Union order follows ``queries`` order.
        """
        if not queries:
            return []

        outcomes = await asyncio.gather(
            *(
                self.search(q, domains, results_per_domain, tolerate_failures=True)
                for q in queries
            ),
            return_exceptions=True,
        )

        candidate_sets: list[list[SearchResultItem]] = []
        failures: list[SearchBackendError] = []
        for query, outcome in zip(queries, outcomes):
            if isinstance(outcome, SearchBackendError):
                failures.append(outcome)
                logger.warning("Sub-query search failed, skipping: %s", query)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            candidate_sets.append(outcome)

        if failures and len(failures) == len(queries):
            raise failures[0]

        return merge_candidates(candidate_sets, limit=limit)
