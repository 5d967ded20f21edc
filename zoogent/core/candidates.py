"""
Candidate set assembly.

A candidate set is an ordered list of SearchResultItem with no two items
sharing a normalized title. Order encodes the tie-break: the first
occurrence (earliest domain, earliest sub-query) wins.
"""

from __future__ import annotations

from typing import Iterable

from zoogent.core.models import SearchResultItem


def dedupe_by_title(items: Iterable[SearchResultItem]) -> list[SearchResultItem]:
    """Drop items whose normalized title was already seen, keeping order.

    Items with a blank title are dropped; they cannot be told apart.
    """
    seen: set[str] = set()
    distinct = []
    for item in items:
        key = item.title_key
        if not key or key in seen:
            continue
        seen.add(key)
        distinct.append(item)
    return distinct


def merge_candidates(
    candidate_sets: Iterable[Iterable[SearchResultItem]],
    limit: int | None = None,
) -> list[SearchResultItem]:
    """Union several candidate sets in the given order, then dedupe and cap."""
    merged = dedupe_by_title(item for items in candidate_sets for item in items)
    if limit is not None:
        merged = merged[:limit]
    return merged


def index_items(
    items: list[SearchResultItem],
) -> tuple[dict[str, int], dict[str, int]]:
    """Lookup tables (link -> position, title key -> position) for echo matching."""
    by_link: dict[str, int] = {}
    by_title: dict[str, int] = {}
    for position, item in enumerate(items):
        if item.link:
            by_link.setdefault(item.link, position)
        by_title.setdefault(item.title_key, position)
    return by_link, by_title
