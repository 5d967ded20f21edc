"""
Shopping pipeline orchestration.

One turn turns free text into a ranked product list and a closing message:

    1. classify   requester is B2C or B2B
    2. rewrite    free text -> search query (prior turn resolves follow-ups)
    3. research   forum summary || marketplace candidates (concurrent)
    4. rank       filter + rank candidates, or recommend names -> search
    5. conclude   short closing message
    6. deliver    TurnResult

Every fallible step is governed by STAGE_POLICIES. Only marketplace search
failing outright and an empty final list abort the turn; everything else
degrades to a fixed value and is recorded in ``TurnResult.fallbacks``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from zoogent.api.metrics import record_stage_fallback, record_turn
from zoogent.config import default_domain_config, default_pipeline_settings, get_logger
from zoogent.core.errors import (
    MalformedModelOutputError,
    ModelInvocationError,
    NoResultsError,
    SearchBackendError,
    ZooGentError,
)
from zoogent.core.models import (
    AgentRole,
    DomainConfig,
    JsonResult,
    ListResult,
    PipelineRun,
    PipelineSettings,
    PipelineStage,
    PipelineVariant,
    SearchResultItem,
    TextResult,
    TurnResult,
    UserRequest,
    UserType,
)
from zoogent.core.parsing import decode_user_type
from zoogent.core.policy import (
    FALLBACK_CONCLUSION,
    FALLBACK_FORUM_SUMMARY,
    NO_FORUM_RESULTS_SUMMARY,
    PolicyStep,
    get_policy,
    resolve_failure,
)
from zoogent.core.prompts import (
    build_classify_content,
    build_conclusion_content,
    build_expand_content,
    build_forum_summary_content,
    build_recommend_content,
    build_rewrite_content,
)
from zoogent.services.invoker import AgentInvoker
from zoogent.services.ranking import RelevanceRanker
from zoogent.services.search import DomainSearchService
from zoogent.utils import timed_operation, truncate

logger = get_logger(__name__)

ProgressCallback = Callable[[PipelineStage], None]

# Recoverable agent failures; anything else is a bug and propagates
_AGENT_ERRORS = (ModelInvocationError, MalformedModelOutputError)

MAX_RECOMMENDATIONS = 5


class PipelineOrchestrator:
    """
    Run shopping turns end to end.

    Holds only read-only collaborators and configuration, so one instance
    can serve concurrent turns; per-turn state lives in a PipelineRun.
    """

    def __init__(
        self,
        invoker: AgentInvoker | None = None,
        search: DomainSearchService | None = None,
        domains: DomainConfig | None = None,
        settings: PipelineSettings | None = None,
    ):
        self.invoker = invoker or AgentInvoker()
        self.search = search or DomainSearchService()
        self.ranker = RelevanceRanker(self.invoker)
        self.domains = domains or default_domain_config()
        self.settings = settings or default_pipeline_settings()

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _degrade(
        self,
        run: PipelineRun | None,
        step: PolicyStep,
        error: BaseException | str,
        default: Any,
    ) -> Any:
        """
        Apply the step's policy to a failure; returns the value to continue with.

        Fail-closed steps re-raise here, before anything is recorded.
        """
        value = resolve_failure(step, error, default)
        mode = get_policy(step).on_failure.value
        if run is not None:
            run.fallbacks.append(step.value)
        record_stage_fallback(step.value, mode)
        logger.warning(
            "Step degraded: %s", error, extra={"stage": step.value, "mode": mode}
        )
        return value

    @staticmethod
    def _enter(
        run: PipelineRun, stage: PipelineStage, on_progress: ProgressCallback | None
    ) -> None:
        run.stage = stage
        logger.debug("Stage %d: %s", int(stage), stage.name.lower())
        if on_progress is not None:
            on_progress(stage)

    # ------------------------------------------------------------------
    # Stage 1 and 2
    # ------------------------------------------------------------------

    async def classify(self, run: PipelineRun) -> UserType:
        """Requester type; any failure means B2C."""
        try:
            result = await self.invoker.run(
                AgentRole.CLASSIFY_INTENT, build_classify_content(run.request)
            )
            if not isinstance(result, JsonResult):
                raise MalformedModelOutputError("classify_intent is not a json role")
            return decode_user_type(result)
        except _AGENT_ERRORS as exc:
            return self._degrade(run, PolicyStep.CLASSIFY, exc, UserType.B2C)

    async def rewrite(self, run: PipelineRun) -> str:
        """Search query; failure or empty answer means the raw user text."""
        try:
            result = await self.invoker.run(
                AgentRole.REWRITE_QUERY, build_rewrite_content(run.request)
            )
            query = result.text if isinstance(result, TextResult) else ""
        except _AGENT_ERRORS as exc:
            return self._degrade(run, PolicyStep.REWRITE, exc, run.request.text)

        # Models sometimes return the query wrapped in quotes or over lines
        query = " ".join(query.strip().strip("\"'").split())
        if not query:
            return self._degrade(run, PolicyStep.REWRITE, "empty rewrite", run.request.text)
        return query

    # ------------------------------------------------------------------
    # Stage 3: research
    # ------------------------------------------------------------------

    async def research_forums(self, run: PipelineRun) -> tuple[list[SearchResultItem], str]:
        """Forum hits plus their summary; never raises for search or agent failures."""
        try:
            results = await self.search.search(
                run.search_query,
                self.domains.forum,
                self.settings.results_per_domain,
                tolerate_failures=True,
            )
        except SearchBackendError as exc:
            return [], self._degrade(run, PolicyStep.FORUM, exc, FALLBACK_FORUM_SUMMARY)

        if not results:
            return [], NO_FORUM_RESULTS_SUMMARY

        try:
            result = await self.invoker.run(
                AgentRole.SUMMARIZE_FORUM, build_forum_summary_content(results)
            )
            summary = result.text if isinstance(result, TextResult) else ""
        except _AGENT_ERRORS as exc:
            return results, self._degrade(
                run, PolicyStep.FORUM, exc, FALLBACK_FORUM_SUMMARY
            )

        if not summary:
            return results, self._degrade(
                run, PolicyStep.FORUM, "empty forum summary", FALLBACK_FORUM_SUMMARY
            )
        return results, summary

    async def expand_query(self, run: PipelineRun) -> list[str]:
        """Marketplace sub-queries; failure or empty answer means [query]."""
        if not self.settings.expand_queries:
            return [run.search_query]

        try:
            result = await self.invoker.run(
                AgentRole.EXPAND_QUERY,
                build_expand_content(run.search_query, run.request.user_type),
            )
            sub_queries = result.items if isinstance(result, ListResult) else []
        except _AGENT_ERRORS as exc:
            return self._degrade(run, PolicyStep.EXPAND, exc, [run.search_query])

        distinct: list[str] = []
        for sub_query in sub_queries:
            if sub_query.casefold() not in (q.casefold() for q in distinct):
                distinct.append(sub_query)
        if not distinct:
            return self._degrade(
                run, PolicyStep.EXPAND, "no sub-queries", [run.search_query]
            )
        return distinct[: self.settings.max_sub_queries]

    async def research_marketplaces(self, run: PipelineRun) -> list[SearchResultItem]:
        """
        Candidate listings for the requester's marketplaces.

        Raises:
            SearchBackendError: If every sub-query's search failed and the
                marketplace step fails closed.
        """
        run.sub_queries = await self.expand_query(run)
        try:
            return await self.search.search_many(
                run.sub_queries,
                self.domains.marketplace_for(run.request.user_type),
                self.settings.results_per_domain,
                limit=self.settings.max_candidates,
            )
        except SearchBackendError as exc:
            return self._degrade(run, PolicyStep.MARKETPLACE_SEARCH, exc, [])

    async def research(self, run: PipelineRun) -> None:
        forum_outcome, market_outcome = await asyncio.gather(
            self.research_forums(run),
            self.research_marketplaces(run),
            return_exceptions=True,
        )
        if isinstance(market_outcome, BaseException):
            raise market_outcome
        if isinstance(forum_outcome, BaseException):
            raise forum_outcome

        run.forum_results, run.forum_summary = forum_outcome
        run.candidates = market_outcome
        logger.info(
            "Research complete: %d forum hits, %d candidates from %d sub-queries",
            len(run.forum_results),
            len(run.candidates),
            len(run.sub_queries),
        )

    # ------------------------------------------------------------------
    # Stage 4: recommend / rank
    # ------------------------------------------------------------------

    async def recommend_products(
        self,
        request: UserRequest,
        forum_results: list[SearchResultItem] | None = None,
        run: PipelineRun | None = None,
    ) -> list[str]:
        """
        Generate recommended product names.

        Asks the recommend agent (with forum context) up to the policy's
        attempt bound while answers are empty or failing, then makes one
        request-only attempt. Returns [] when all of those fail.
        """
        policy = get_policy(PolicyStep.RECOMMEND)
        max_attempts = min(policy.max_attempts, self.settings.recommend_max_attempts)
        content = build_recommend_content(request, forum_results or [])

        for attempt in range(1, max_attempts + 1):
            try:
                result = await self.invoker.run(AgentRole.RECOMMEND_PRODUCTS, content)
            except _AGENT_ERRORS as exc:
                logger.warning(
                    "Recommendation attempt %d/%d failed: %s", attempt, max_attempts, exc
                )
                continue
            names = result.items if isinstance(result, ListResult) else []
            if names:
                return names[:MAX_RECOMMENDATIONS]
            logger.warning(
                "Recommendation attempt %d/%d returned no products", attempt, max_attempts
            )

        self._degrade(run, PolicyStep.RECOMMEND, "retries exhausted, request-only fallback", None)
        try:
            result = await self.invoker.run(
                AgentRole.RECOMMEND_PRODUCTS_REQUEST_ONLY,
                build_recommend_content(request),
            )
        except _AGENT_ERRORS as exc:
            logger.warning("Request-only recommendation failed: %s", exc)
            return []
        names = result.items if isinstance(result, ListResult) else []
        return names[:MAX_RECOMMENDATIONS]

    async def rank_candidates(self, run: PipelineRun) -> list[SearchResultItem]:
        user_type = run.request.user_type
        relevant = await self.ranker.filter(run.search_query, run.candidates, user_type)
        return await self.ranker.rank(run.search_query, relevant, user_type)

    async def rank_recommendations(self, run: PipelineRun) -> list[SearchResultItem]:
        """Recommend names, order them, then look each one up on the marketplaces."""
        names = await self.recommend_products(run.request, run.forum_results, run=run)
        if not names:
            return []
        run.recommendations = await self.ranker.rank_names(
            run.search_query, names, run.request.user_type
        )

        try:
            return await self.search.search_many(
                run.recommendations,
                self.domains.marketplace_for(run.request.user_type),
                self.settings.results_per_domain,
                limit=self.settings.max_candidates,
            )
        except SearchBackendError as exc:
            logger.warning("Recommendation lookups all failed: %s", exc)
            return []

    async def rank(self, run: PipelineRun) -> list[SearchResultItem]:
        if run.candidates and self.settings.variant is PipelineVariant.DIRECT_RANK:
            return await self.rank_candidates(run)

        ranked = await self.rank_recommendations(run)
        if not ranked and run.candidates:
            return await self.rank_candidates(run)
        return ranked

    # ------------------------------------------------------------------
    # Stage 5
    # ------------------------------------------------------------------

    async def conclude(self, run: PipelineRun) -> str:
        try:
            result = await self.invoker.run(
                AgentRole.CONCLUDE,
                build_conclusion_content(
                    run.request, run.ranked, self.settings.conclusion_top_n
                ),
            )
            summary = result.text if isinstance(result, TextResult) else ""
        except _AGENT_ERRORS as exc:
            return self._degrade(run, PolicyStep.CONCLUDE, exc, FALLBACK_CONCLUSION)
        if not summary:
            return self._degrade(
                run, PolicyStep.CONCLUDE, "empty conclusion", FALLBACK_CONCLUSION
            )
        return summary

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    async def run(
        self,
        user_text: str,
        prior_text: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TurnResult:
        """
        Run one shopping turn.

        Args:
            user_text: The user's message for this turn.
            prior_text: The previous turn's message, for follow-ups.
            on_progress: Called with each PipelineStage as it starts.

        Returns:
            TurnResult with ranked products and summaries.

        Raises:
            ZooGentError: SearchBackendError when marketplace search failed
                outright, NoResultsError when no product survived every
                fallback. ``stage`` and ``request`` are set on the error.
        """
        run = PipelineRun(request=UserRequest(text=user_text, prior_text=prior_text or None))
        logger.info("Turn started: %s", truncate(user_text))

        try:
            with timed_operation("Turn", logger):
                self._enter(run, PipelineStage.CLASSIFY, on_progress)
                run.request = run.request.with_user_type(await self.classify(run))

                self._enter(run, PipelineStage.REWRITE, on_progress)
                run.search_query = await self.rewrite(run)
                logger.info(
                    "Search query: %s",
                    truncate(run.search_query),
                    extra={"user_type": run.request.user_type.value},
                )

                self._enter(run, PipelineStage.RESEARCH, on_progress)
                await self.research(run)

                self._enter(run, PipelineStage.RANK, on_progress)
                run.ranked = await self.rank(run)
                if not run.ranked:
                    raise NoResultsError(
                        f"No products found for '{truncate(run.search_query, 60)}'"
                    )

                self._enter(run, PipelineStage.CONCLUDE, on_progress)
                run.summary = await self.conclude(run)

                self._enter(run, PipelineStage.DELIVER, on_progress)
        except ZooGentError as exc:
            if exc.stage is None:
                exc.stage = run.stage
            exc.request = run.request
            record_turn(type(exc).__name__)
            logger.error(
                "Turn failed: %s", exc, extra={"stage": run.stage.name.lower()}
            )
            raise

        record_turn("ok")
        if run.fallbacks:
            logger.info("Turn delivered with fallbacks: %s", ", ".join(run.fallbacks))
        return run.to_result()


def run_pipeline(
    user_text: str,
    prior_text: str | None = None,
    orchestrator: PipelineOrchestrator | None = None,
    on_progress: ProgressCallback | None = None,
) -> TurnResult:
    """
    Run one turn synchronously (for scripts and notebooks).

    Must not be called from inside a running event loop; use
    ``await PipelineOrchestrator.run(...)`` there.
    """
    orchestrator = orchestrator or PipelineOrchestrator()
    return asyncio.run(orchestrator.run(user_text, prior_text, on_progress))


__all__ = [
    "PipelineOrchestrator",
    "ProgressCallback",
    "run_pipeline",
]
