"""Tests for zoogent.core.candidates: title dedup and candidate merging."""

from zoogent.core.candidates import dedupe_by_title, index_items, merge_candidates
from zoogent.core.models import SearchResultItem


def _item(title: str, domain: str = "shop-a.example", link: str | None = None) -> SearchResultItem:
    return SearchResultItem(
        title=title,
        link=link or f"https://{domain}/{title.lower().replace(' ', '-')}",
        domain=domain,
    )


class TestDedupeByTitle:
    def test_case_and_whitespace_insensitive(self):
        items = [
            _item("Sony WH-1000XM5"),
            _item("sony  wh-1000xm5", domain="shop-b.example"),
            _item("SONY WH-1000XM5 ", domain="shop-c.example"),
        ]
        result = dedupe_by_title(items)
        assert len(result) == 1
        assert result[0].domain == "shop-a.example"

    def test_preserves_first_occurrence_order(self):
        items = [_item("B"), _item("A"), _item("b"), _item("C")]
        assert [i.title for i in dedupe_by_title(items)] == ["B", "A", "C"]

    def test_drops_blank_titles(self):
        assert dedupe_by_title([_item("   "), _item("Real")])[0].title == "Real"

    def test_no_equal_normalized_titles_remain(self):
        titles = ["Kettle", "KETTLE", "kettle ", "Toaster", "toaster", "Mixer"]
        result = dedupe_by_title(_item(t) for t in titles)
        keys = [i.title_key for i in result]
        assert len(keys) == len(set(keys)) == 3


class TestMergeCandidates:
    def test_union_in_set_order(self):
        first = [_item("A"), _item("B")]
        second = [_item("b", domain="shop-b.example"), _item("C")]
        merged = merge_candidates([first, second])
        assert [i.title for i in merged] == ["A", "B", "C"]
        assert merged[1].domain == "shop-a.example"

    def test_limit_applies_after_dedup(self):
        sets = [[_item(f"P{i}") for i in range(15)], [_item(f"P{i}") for i in range(10, 30)]]
        merged = merge_candidates(sets, limit=20)
        assert len(merged) == 20
        assert merged[-1].title == "P19"

    def test_empty(self):
        assert merge_candidates([]) == []


class TestIndexItems:
    def test_first_position_wins(self):
        items = [_item("A", link="https://x/1"), _item("a", link="https://x/1")]
        by_link, by_title = index_items(items)
        assert by_link["https://x/1"] == 0
        assert by_title["a"] == 0
