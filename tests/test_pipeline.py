"""Tests for zoogent.services.pipeline: end-to-end turns over fakes."""

import asyncio
import json

import pytest

from zoogent.core.errors import (
    MalformedModelOutputError,
    ModelInvocationError,
    NoResultsError,
    SearchBackendError,
)
from zoogent.core.models import (
    AgentRole,
    PipelineRun,
    PipelineStage,
    PipelineVariant,
    SearchResultItem,
    UserRequest,
    UserType,
)
from zoogent.core.policy import (
    FALLBACK_CONCLUSION,
    FALLBACK_FORUM_SUMMARY,
    NO_FORUM_RESULTS_SUMMARY,
    FailureMode,
    PolicyStep,
)

RAW_MESSAGE = "i need earbuds that dont fall out when i run"


def reverse_ranking(user_content: str) -> str:
    listings = json.loads(user_content[user_content.index("[") :])
    return json.dumps({"products": listings[::-1]})


def happy_responses(overrides=None):
    responses = {
        AgentRole.CLASSIFY_INTENT: '{"userType": "B2C"}',
        AgentRole.REWRITE_QUERY: "best secure fit wireless running earbuds",
        AgentRole.EXPAND_QUERY: "1. running earbuds ear hooks\n2. sport earbuds secure fit",
        AgentRole.SUMMARIZE_FORUM: "Runners favour ear-hook designs.",
        AgentRole.FILTER_RELEVANCE: '{"relevantIndices": [0, 1, 2, 3, 4]}',
        AgentRole.RANK_PRODUCTS: reverse_ranking,
        AgentRole.CONCLUDE: "Here are running earbuds that stay put.",
    }
    responses.update(overrides or {})
    return responses


@pytest.fixture
def five_item_backend(make_backend, make_hit):
    return make_backend(
        {
            "forum-a.example": [make_hit("Which earbuds for marathons?")],
            "shop-a.example": [make_hit("Shokz OpenRun"), make_hit("Beats Powerbeats Pro"), make_hit("Jabra Elite 8")],
            "shop-b.example": [make_hit("Sony Float Run"), make_hit("Anker Soundcore Sport X10")],
        }
    )


class TestScenarios:
    def test_five_distinct_items_over_two_domains(self, make_llm, make_orchestrator, five_item_backend):
        orchestrator = make_orchestrator(make_llm(happy_responses()), five_item_backend)
        result = asyncio.run(orchestrator.run(RAW_MESSAGE))

        candidate_links = {
            hit["link"] for site in ("shop-a.example", "shop-b.example") for hit in five_item_backend.results[site]
        }
        ranked_links = [item.link for item in result.ranked_products]
        assert 0 < len(ranked_links) <= 5
        assert set(ranked_links) <= candidate_links
        assert len(set(ranked_links)) == len(ranked_links)
        assert result.ranked_products[0].title == "Anker Soundcore Sport X10"
        assert result.summary == "Here are running earbuds that stay put."
        assert result.forum_summary == "Runners favour ear-hook designs."
        assert result.stage_reached is PipelineStage.DELIVER
        assert result.fallbacks == []

    def test_llm_always_times_out(self, make_llm, make_orchestrator, five_item_backend):
        llm = make_llm(default=TimeoutError("model timed out"))
        orchestrator = make_orchestrator(llm, five_item_backend)
        result = asyncio.run(orchestrator.run(RAW_MESSAGE))

        data = result.to_dict()
        assert data["searchQuery"] == RAW_MESSAGE
        assert data["userType"] == "B2C"
        assert data["summary"] == FALLBACK_CONCLUSION
        assert data["forumInfo"]["summary"] == FALLBACK_FORUM_SUMMARY
        assert [p["title"] for p in data["rankedProducts"]] == [
            "Shokz OpenRun",
            "Beats Powerbeats Pro",
            "Jabra Elite 8",
            "Sony Float Run",
            "Anker Soundcore Sport X10",
        ]
        assert {"classify", "rewrite", "expand", "forum", "conclude"} <= set(result.fallbacks)

    def test_identical_titles_across_domains(self, make_llm, make_orchestrator, make_backend, make_hit):
        backend = make_backend(
            {
                "shop-a.example": [make_hit("Garmin Forerunner 265", link="https://a/265"), make_hit("Coros Pace 3", link="https://a/p3")],
                "shop-b.example": [make_hit("GARMIN FORERUNNER 265", link="https://b/265"), make_hit("coros pace 3", link="https://b/p3")],
            }
        )
        responses = happy_responses(
            {AgentRole.EXPAND_QUERY: "", AgentRole.RANK_PRODUCTS: "", AgentRole.FILTER_RELEVANCE: ""}
        )
        result = asyncio.run(make_orchestrator(make_llm(responses), backend).run("running watch"))

        assert [p.link for p in result.ranked_products] == ["https://a/265", "https://a/p3"]
        assert {p.domain for p in result.ranked_products} == {"shop-a.example"}


class TestStages:
    def test_classify_is_idempotent(self, make_llm, make_orchestrator, make_backend):
        llm = make_llm({AgentRole.CLASSIFY_INTENT: '{"userType": "B2B"}'})
        orchestrator = make_orchestrator(llm, make_backend())
        run = PipelineRun(request=UserRequest("200 ergonomic chairs for our office"))

        first = asyncio.run(orchestrator.classify(run))
        second = asyncio.run(orchestrator.classify(run))
        assert first is second is UserType.B2B

    def test_classify_garbage_defaults_b2c(self, make_llm, make_orchestrator, make_backend):
        llm = make_llm({AgentRole.CLASSIFY_INTENT: "definitely a business"})
        run = PipelineRun(request=UserRequest("chairs"))
        assert asyncio.run(make_orchestrator(llm, make_backend()).classify(run)) is UserType.B2C
        assert run.fallbacks == ["classify"]

    def test_empty_rewrite_uses_raw_text(self, make_llm, make_orchestrator, make_backend):
        llm = make_llm({AgentRole.REWRITE_QUERY: '  ""  '})
        run = PipelineRun(request=UserRequest("kettle"))
        assert asyncio.run(make_orchestrator(llm, make_backend()).rewrite(run)) == "kettle"

    def test_prior_text_reaches_rewrite(self, make_llm, make_orchestrator, five_item_backend):
        llm = make_llm(happy_responses())
        asyncio.run(make_orchestrator(llm, five_item_backend).run("cheaper ones?", prior_text="running earbuds"))
        content = llm.calls_for(AgentRole.REWRITE_QUERY)[0]
        assert "cheaper ones?" in content
        assert "running earbuds" in content

    def test_b2b_searches_wholesale_marketplaces(self, make_llm, make_orchestrator, make_backend, make_hit):
        backend = make_backend({"wholesale.example": [make_hit("OEM Sport Earbuds MOQ 500")]})
        llm = make_llm(happy_responses({AgentRole.CLASSIFY_INTENT: '{"userType":"B2B"}'}))
        result = asyncio.run(make_orchestrator(llm, backend).run("500 earbuds for our gym members"))

        market_sites = {site for _, site, _ in backend.calls if not site.startswith("forum")}
        assert market_sites == {"wholesale.example"}
        assert result.user_type is UserType.B2B
        assert result.ranked_products[0].domain == "wholesale.example"

    def test_expanded_sub_queries_are_searched(self, make_llm, make_orchestrator, five_item_backend):
        llm = make_llm(happy_responses())
        asyncio.run(make_orchestrator(llm, five_item_backend).run(RAW_MESSAGE))
        queries = {q for q, site, _ in five_item_backend.calls if site.startswith("shop")}
        assert queries == {"running earbuds ear hooks", "sport earbuds secure fit"}

    def test_sub_queries_capped(self, make_llm, make_orchestrator, five_item_backend):
        expand = "\n".join(f"{i}. query {i}" for i in range(1, 9))
        llm = make_llm(happy_responses({AgentRole.EXPAND_QUERY: expand}))
        orchestrator = make_orchestrator(llm, five_item_backend, max_sub_queries=3)
        asyncio.run(orchestrator.run(RAW_MESSAGE))
        queries = {q for q, site, _ in five_item_backend.calls if site.startswith("shop")}
        assert queries == {"query 1", "query 2", "query 3"}

    def test_candidates_capped(self, make_llm, make_orchestrator, make_backend, make_hit):
        backend = make_backend(lambda query, site: [make_hit(f"{site} {query} {i}") for i in range(10)])
        llm = make_llm(happy_responses({AgentRole.RANK_PRODUCTS: "", AgentRole.FILTER_RELEVANCE: ""}))
        orchestrator = make_orchestrator(llm, backend, results_per_domain=10, max_candidates=20)
        result = asyncio.run(orchestrator.run(RAW_MESSAGE))
        assert len(result.ranked_products) == 20

    def test_progress_reports_every_stage_in_order(self, make_llm, make_orchestrator, five_item_backend):
        seen = []
        orchestrator = make_orchestrator(make_llm(happy_responses()), five_item_backend)
        asyncio.run(orchestrator.run(RAW_MESSAGE, on_progress=seen.append))
        assert seen == list(PipelineStage)


class TestForumResearch:
    def test_no_forum_hits_skips_summarizer(self, make_llm, make_orchestrator, make_backend, make_hit):
        backend = make_backend({"shop-a.example": [make_hit("Shokz OpenRun")]})
        llm = make_llm(happy_responses())
        result = asyncio.run(make_orchestrator(llm, backend).run(RAW_MESSAGE))
        assert result.forum_summary == NO_FORUM_RESULTS_SUMMARY
        assert llm.calls_for(AgentRole.SUMMARIZE_FORUM) == []

    def test_forum_search_failure_does_not_fail_turn(self, make_llm, make_orchestrator, make_backend, make_hit):
        backend = make_backend(
            {"shop-a.example": [make_hit("Shokz OpenRun")]},
            failing={"forum-a.example", "forum-b.example"},
        )
        result = asyncio.run(make_orchestrator(make_llm(happy_responses()), backend).run(RAW_MESSAGE))
        assert result.forum_summary == FALLBACK_FORUM_SUMMARY
        assert result.ranked_products

    def test_summarizer_failure_falls_back(self, make_llm, make_orchestrator, five_item_backend):
        llm = make_llm(happy_responses({AgentRole.SUMMARIZE_FORUM: ConnectionError("down")}))
        result = asyncio.run(make_orchestrator(llm, five_item_backend).run(RAW_MESSAGE))
        assert result.forum_summary == FALLBACK_FORUM_SUMMARY
        assert len(result.forum_results) == 1


class TestRecommendation:
    def test_at_most_three_attempts_then_request_only(self, make_llm, make_orchestrator, make_backend):
        llm = make_llm(
            {
                AgentRole.RECOMMEND_PRODUCTS: "I would suggest looking around.",
                AgentRole.RECOMMEND_PRODUCTS_REQUEST_ONLY: "1. Shokz OpenRun Pro 2",
            }
        )
        orchestrator = make_orchestrator(llm, make_backend())
        names = asyncio.run(orchestrator.recommend_products(UserRequest("running earbuds"), []))

        assert names == ["Shokz OpenRun Pro 2"]
        assert len(llm.calls_for(AgentRole.RECOMMEND_PRODUCTS)) == 3
        assert len(llm.calls_for(AgentRole.RECOMMEND_PRODUCTS_REQUEST_ONLY)) == 1

    def test_invocation_failures_count_as_attempts(self, make_llm, make_orchestrator, make_backend):
        llm = make_llm(
            {
                AgentRole.RECOMMEND_PRODUCTS: TimeoutError("slow"),
                AgentRole.RECOMMEND_PRODUCTS_REQUEST_ONLY: TimeoutError("slow"),
            }
        )
        orchestrator = make_orchestrator(llm, make_backend())
        assert asyncio.run(orchestrator.recommend_products(UserRequest("x"))) == []
        assert len(llm.calls_for(AgentRole.RECOMMEND_PRODUCTS)) == 3

    def test_success_on_second_attempt_stops_retrying(self, make_llm, make_orchestrator, make_backend):
        llm = make_llm({AgentRole.RECOMMEND_PRODUCTS: ["", "1. A\n2. B\n3. C\n4. D\n5. E\n6. F"]})
        orchestrator = make_orchestrator(llm, make_backend())
        names = asyncio.run(orchestrator.recommend_products(UserRequest("x")))
        assert names == ["A", "B", "C", "D", "E"]
        assert len(llm.calls_for(AgentRole.RECOMMEND_PRODUCTS)) == 2
        assert llm.calls_for(AgentRole.RECOMMEND_PRODUCTS_REQUEST_ONLY) == []

    def test_recommend_then_rank_variant(self, make_llm, make_orchestrator, make_backend, make_hit):
        def by_query(query, site):
            if query == "Shokz OpenRun Pro":
                return [make_hit("Shokz OpenRun Pro (Black)")]
            if query == "Jabra Elite 8 Active":
                return [make_hit("Jabra Elite 8 Active Gen 2")]
            return [make_hit("Generic Earbuds")]

        llm = make_llm(
            happy_responses(
                {
                    AgentRole.RECOMMEND_PRODUCTS: "1. Shokz OpenRun Pro\n2. Jabra Elite 8 Active",
                    AgentRole.MATCH_PRODUCTS: '{"products": ["Jabra Elite 8 Active", "Shokz OpenRun Pro"]}',
                }
            )
        )
        orchestrator = make_orchestrator(
            llm, make_backend(by_query), variant=PipelineVariant.RECOMMEND_THEN_RANK
        )
        result = asyncio.run(orchestrator.run(RAW_MESSAGE))

        assert result.recommendations == ["Jabra Elite 8 Active", "Shokz OpenRun Pro"]
        assert [p.title for p in result.ranked_products] == [
            "Jabra Elite 8 Active Gen 2",
            "Shokz OpenRun Pro (Black)",
        ]
        assert llm.calls_for(AgentRole.RANK_PRODUCTS) == []

    def test_empty_candidates_fall_back_to_recommendations(self, make_llm, make_orchestrator, make_backend, make_hit):
        def by_query(query, site):
            if query == "Shokz OpenRun Pro":
                return [make_hit("Shokz OpenRun Pro (Black)")]
            return []

        llm = make_llm(happy_responses({AgentRole.RECOMMEND_PRODUCTS: "1. Shokz OpenRun Pro"}))
        result = asyncio.run(make_orchestrator(llm, make_backend(by_query)).run(RAW_MESSAGE))
        assert [p.title for p in result.ranked_products] == ["Shokz OpenRun Pro (Black)"]
        assert result.recommendations == ["Shokz OpenRun Pro"]


class TestFailures:
    def test_no_results_anywhere_raises(self, make_llm, make_orchestrator, make_backend):
        orchestrator = make_orchestrator(make_llm(happy_responses()), make_backend())
        with pytest.raises(NoResultsError) as exc_info:
            asyncio.run(orchestrator.run(RAW_MESSAGE))
        assert exc_info.value.stage is PipelineStage.RANK
        assert exc_info.value.request.text == RAW_MESSAGE

    def test_marketplace_failure_fails_closed(self, make_llm, make_orchestrator, make_backend, make_hit):
        backend = make_backend(
            {"forum-a.example": [make_hit("Thread")]},
            failing={"shop-a.example", "shop-b.example"},
        )
        orchestrator = make_orchestrator(make_llm(happy_responses()), backend)
        with pytest.raises(SearchBackendError) as exc_info:
            asyncio.run(orchestrator.run(RAW_MESSAGE))
        assert exc_info.value.stage is PipelineStage.RESEARCH
        assert exc_info.value.request.text == RAW_MESSAGE

    def test_one_failing_marketplace_is_tolerated(self, make_llm, make_orchestrator, make_backend, make_hit):
        backend = make_backend({"shop-a.example": [make_hit("Shokz OpenRun")]}, failing={"shop-b.example"})
        result = asyncio.run(make_orchestrator(make_llm(happy_responses()), backend).run(RAW_MESSAGE))
        assert [p.title for p in result.ranked_products] == ["Shokz OpenRun"]

    def test_conclusion_failure_uses_fixed_text(self, make_llm, make_orchestrator, five_item_backend):
        llm = make_llm(happy_responses({AgentRole.CONCLUDE: ConnectionError("reset")}))
        result = asyncio.run(make_orchestrator(llm, five_item_backend).run(RAW_MESSAGE))
        assert result.summary == FALLBACK_CONCLUSION
        assert "conclude" in result.fallbacks

    def test_conclusion_sees_at_most_top_n(self, make_llm, make_orchestrator, make_backend, make_hit):
        backend = make_backend({"shop-a.example": [make_hit(f"Item {i}") for i in range(6)]})
        llm = make_llm(happy_responses({AgentRole.RANK_PRODUCTS: "", AgentRole.FILTER_RELEVANCE: ""}))
        orchestrator = make_orchestrator(llm, backend, results_per_domain=6, conclusion_top_n=2)
        asyncio.run(orchestrator.run(RAW_MESSAGE))
        content = llm.calls_for(AgentRole.CONCLUDE)[0]
        assert "Item 1" in content
        assert "Item 2" not in content


class TestPolicyTable:
    def test_fail_closed_conclusion_aborts_turn(self, make_llm, make_orchestrator, five_item_backend, override_policy):
        override_policy(PolicyStep.CONCLUDE, FailureMode.FAIL_CLOSED)
        llm = make_llm(happy_responses({AgentRole.CONCLUDE: ConnectionError("reset")}))
        with pytest.raises(ModelInvocationError) as exc_info:
            asyncio.run(make_orchestrator(llm, five_item_backend).run(RAW_MESSAGE))
        assert exc_info.value.stage is PipelineStage.CONCLUDE

    def test_fail_open_marketplace_search_continues(
        self, make_llm, make_orchestrator, make_backend, make_hit, override_policy
    ):
        override_policy(PolicyStep.MARKETPLACE_SEARCH, FailureMode.FAIL_OPEN)

        def by_query(query, site):
            if query == "Shokz OpenRun Pro" and site == "shop-b.example":
                return [make_hit("Shokz OpenRun Pro (Black)")]
            return []

        backend = make_backend(by_query, failing_queries={"running earbuds ear hooks", "sport earbuds secure fit"})
        llm = make_llm(happy_responses({AgentRole.RECOMMEND_PRODUCTS: "1. Shokz OpenRun Pro"}))
        result = asyncio.run(make_orchestrator(llm, backend).run(RAW_MESSAGE))

        assert "marketplace_search" in result.fallbacks
        assert [p.title for p in result.ranked_products] == ["Shokz OpenRun Pro (Black)"]

    def test_fail_closed_filter_raises(self, make_llm, make_orchestrator, make_backend, make_hit, override_policy):
        override_policy(PolicyStep.FILTER, FailureMode.FAIL_CLOSED)
        llm = make_llm({AgentRole.FILTER_RELEVANCE: "not json at all"})
        ranker = make_orchestrator(llm, make_backend()).ranker
        items = [SearchResultItem.from_dict(make_hit(title)) for title in ("Kettle", "Toaster")]
        with pytest.raises(MalformedModelOutputError):
            asyncio.run(ranker.filter("kettle", items, UserType.B2C))
