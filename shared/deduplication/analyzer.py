"""
DuplicateAnalyzer: finds existing tracker issues that match a new report.

One run walks QUERY_GENERATION -> SEARCHING -> DEDUPLICATING -> SCORING ->
RANKED and ends DONE or FAILED. Per-query search failures and per-candidate
scoring failures are absorbed; only an all-searches-failed run, a missing
engine or a broken query generator fail the whole run.
"""

import asyncio
import itertools
import time
from typing import TYPE_CHECKING, Callable, Optional

from shared.errors import (
    AnalysisCancelledError,
    NoAnalysisEngineError,
    RateLimitedError,
    RemoteAuthError,
    RequestTimeoutError,
)
from shared.logging import get_logger

from .models import (
    AnalysisResult,
    AnalysisState,
    CandidateIssue,
    EnrichmentContext,
    ProposedIssue,
    ScoredCandidate,
)
from .queries import generate_search_queries
from .scorer import SimilarityScorer, classify_score

if TYPE_CHECKING:
    from llm.src.adapters import CompletionEngine
    from tracker.src.search import IssueSearchClient

log = get_logger("shared", "deduplication.analyzer")

QueryGenerator = Callable[[ProposedIssue, EnrichmentContext], list[str]]
StateCallback = Callable[[AnalysisState], None]

LEXICAL_MODEL_LABEL = "Lexical similarity"

_run_ids = itertools.count(1)


class AnalysisRun:
    """
    Handle on one in-progress analysis.

    Await `result()` for the AnalysisResult. `cancel()` abandons the run:
    calls already in flight finish, but nothing is delivered and `result()`
    raises AnalysisCancelledError.
    """

    def __init__(self, run_id: int, on_state_change: Optional[StateCallback] = None):
        self.run_id = run_id
        self.state = AnalysisState.IDLE
        self._cancelled = False
        self._on_state_change = on_state_change
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self.state in (AnalysisState.DONE, AnalysisState.FAILED)

    def cancel(self) -> None:
        if self._cancelled or self.done:
            return
        self._cancelled = True
        log.info("deduplication.run.cancelled", run_id=self.run_id, state=self.state.value)

    def _attach(self, task: asyncio.Task) -> None:
        self._task = task
        task.add_done_callback(self._consume_abandoned)

    def _consume_abandoned(self, task: asyncio.Task) -> None:
        # A cancelled run's outcome is never awaited
        if self._cancelled and not task.cancelled():
            task.exception()

    def _transition(self, state: AnalysisState) -> None:
        self.state = state
        log.debug("deduplication.run.state", run_id=self.run_id, state=state.value)
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _check_cancelled(self) -> None:
        if self._cancelled:
            raise AnalysisCancelledError(f"Analysis run {self.run_id} was cancelled")

    async def result(self) -> AnalysisResult:
        """Wait for the run and return its result."""
        self._check_cancelled()
        result = await self._task
        self._check_cancelled()
        return result


class DuplicateAnalyzer:
    """
    Orchestrates query generation, tracker search, dedup, scoring and ranking.

    The analyzer does not care whether the completion engine is remote or
    local; it only uses the engine's `name` for `ai_model_used`.
    """

    def __init__(
        self,
        search_client: "IssueSearchClient",
        repositories: list[str],
        engine: Optional["CompletionEngine"] = None,
        *,
        max_results: int = 10,
        use_ai_judge: bool = True,
        search_concurrency: int = 1,
        scoring_concurrency: int = 4,
        query_generator: QueryGenerator = generate_search_queries,
        scorer: Optional[SimilarityScorer] = None,
    ):
        """
        Initialize the analyzer.

        Args:
            search_client: Tracker search client
            repositories: Repository scopes to search (owner/name)
            engine: Completion engine used as the similarity judge
            max_results: Ranked results kept per run
            use_ai_judge: Score with the engine (False = lexical formula only)
            search_concurrency: Searches in flight at once (1 = sequential)
            scoring_concurrency: Scoring calls in flight at once
            query_generator: Builds search queries from the issue
            scorer: Similarity scorer (defaults to one wrapping `engine`)
        """
        self.search_client = search_client
        self.repositories = list(repositories)
        self.engine = engine
        self.max_results = max_results
        self.use_ai_judge = use_ai_judge
        self.search_concurrency = max(1, search_concurrency)
        self.scoring_concurrency = max(1, scoring_concurrency)
        self.query_generator = query_generator
        self.scorer = scorer if scorer is not None else SimilarityScorer(engine)

        self._current: Optional[AnalysisRun] = None

    @property
    def model_label(self) -> str:
        """What `ai_model_used` reports for runs of this analyzer."""
        if self.use_ai_judge and self.engine is not None:
            return self.engine.name
        return LEXICAL_MODEL_LABEL

    def start(
        self,
        issue: ProposedIssue,
        context: EnrichmentContext,
        on_state_change: Optional[StateCallback] = None,
    ) -> AnalysisRun:
        """
        Start a run in the background. Any run already in progress is cancelled.

        Must be called from a running event loop.
        """
        if self._current is not None:
            self._current.cancel()

        run = AnalysisRun(next(_run_ids), on_state_change)
        run._attach(asyncio.create_task(self._execute(run, issue, context)))
        self._current = run
        return run

    async def analyze(
        self,
        issue: ProposedIssue,
        context: EnrichmentContext,
        on_state_change: Optional[StateCallback] = None,
    ) -> AnalysisResult:
        """Run a complete analysis and return the ranked result."""
        return await self.start(issue, context, on_state_change).result()

    async def _execute(
        self,
        run: AnalysisRun,
        issue: ProposedIssue,
        context: EnrichmentContext,
    ) -> AnalysisResult:
        start_time = time.monotonic()
        try:
            result = await self._run_steps(run, issue, context)
        except BaseException:
            run._transition(AnalysisState.FAILED)
            raise

        result.search_time_ms = (time.monotonic() - start_time) * 1000
        run._transition(AnalysisState.DONE)

        log.info(
            "deduplication.run.complete",
            run_id=run.run_id,
            queries=len(result.queries),
            failed_queries=len(result.failed_queries),
            total_searched=result.total_searched,
            returned=len(result.analyzed_issues),
            model=result.ai_model_used,
            time_ms=round(result.search_time_ms, 1),
        )
        return result

    async def _run_steps(
        self,
        run: AnalysisRun,
        issue: ProposedIssue,
        context: EnrichmentContext,
    ) -> AnalysisResult:
        if self.engine is None:
            raise NoAnalysisEngineError()

        run._transition(AnalysisState.QUERY_GENERATION)
        try:
            queries = self.query_generator(issue, context)
        except Exception as e:
            log.error("deduplication.queries.failed", run_id=run.run_id, error=str(e))
            raise NoAnalysisEngineError() from e

        run._check_cancelled()
        run._transition(AnalysisState.SEARCHING)
        outcomes = await self._search_all(run, queries)
        run._check_cancelled()

        run._transition(AnalysisState.DEDUPLICATING)
        candidates, failed_queries = self._merge_outcomes(run, queries, outcomes)

        run._transition(AnalysisState.SCORING)
        scored = await self._score_all(run, issue, context, candidates)
        run._check_cancelled()

        run._transition(AnalysisState.RANKED)
        ranked = sorted(scored, key=lambda c: c.similarity_score, reverse=True)

        return AnalysisResult(
            analyzed_issues=ranked[:self.max_results],
            total_searched=len(candidates),
            ai_model_used=self.model_label,
            queries=list(queries),
            failed_queries=failed_queries,
        )

    async def _search_all(self, run: AnalysisRun, queries: list[str]) -> list:
        """Run every query. Results come back in query order."""
        semaphore = asyncio.Semaphore(self.search_concurrency)

        async def run_query(query: str) -> list[CandidateIssue]:
            async with semaphore:
                # Queued searches of a cancelled run are never sent
                run._check_cancelled()
                return await self.search_client.search(query, self.repositories, state="all")

        return await asyncio.gather(
            *(run_query(query) for query in queries),
            return_exceptions=True,
        )

    def _merge_outcomes(
        self,
        run: AnalysisRun,
        queries: list[str],
        outcomes: list,
    ) -> tuple[list[CandidateIssue], list[str]]:
        """Unique candidates in query order (first occurrence wins), plus failed queries."""
        candidates: list[CandidateIssue] = []
        seen_ids: set[int] = set()
        failed_queries: list[str] = []
        errors: list[Exception] = []

        for query, outcome in zip(queries, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                failed_queries.append(query)
                errors.append(outcome)
                log.warning(
                    "deduplication.search.failed",
                    run_id=run.run_id,
                    query=query,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                continue

            log.debug("deduplication.search.complete", run_id=run.run_id, query=query, result_count=len(outcome))
            for candidate in outcome:
                if candidate.id not in seen_ids:
                    seen_ids.add(candidate.id)
                    candidates.append(candidate)

        if queries and len(errors) == len(queries):
            raise self._all_searches_failed(errors)

        log.info(
            "deduplication.search.merged",
            run_id=run.run_id,
            unique_candidates=len(candidates),
            failed_queries=len(failed_queries),
        )
        return candidates, failed_queries

    @staticmethod
    def _all_searches_failed(errors: list[Exception]) -> Exception:
        for error in errors:
            if isinstance(error, RateLimitedError):
                return error
        for error in errors:
            if isinstance(error, RemoteAuthError):
                return error
        failure = RequestTimeoutError(
            f"All {len(errors)} tracker searches failed (last error: {errors[-1]})"
        )
        failure.__cause__ = errors[-1]
        return failure

    async def _score_all(
        self,
        run: AnalysisRun,
        issue: ProposedIssue,
        context: EnrichmentContext,
        candidates: list[CandidateIssue],
    ) -> list[ScoredCandidate]:
        semaphore = asyncio.Semaphore(self.scoring_concurrency)

        async def score_one(candidate: CandidateIssue) -> ScoredCandidate:
            async with semaphore:
                run._check_cancelled()
                try:
                    judgment = await self.scorer.score(issue, context, candidate, self.use_ai_judge)
                except Exception as e:
                    log.warning(
                        "deduplication.scoring.failed",
                        candidate=candidate.number,
                        error=str(e),
                    )
                    judgment = self.scorer.lexical(
                        issue,
                        context,
                        candidate,
                        reasoning=f"Fallback to lexical similarity (AI analysis failed: {e})",
                    )

            relationship, action = classify_score(judgment.score)
            return ScoredCandidate(
                issue=candidate,
                similarity_score=judgment.score,
                relationship_type=relationship,
                reasoning=judgment.reasoning,
                suggested_action=action,
                scoring_engine=judgment.engine,
            )

        return list(await asyncio.gather(*(score_one(c) for c in candidates)))
