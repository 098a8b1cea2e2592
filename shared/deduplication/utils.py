"""
Utility functions for duplicate-issue analysis.

Contains:
- Factory functions
- Convenience helpers
"""

from typing import TYPE_CHECKING, Optional

from shared.config import TriageConfig
from shared.logging import get_logger

from .analyzer import DuplicateAnalyzer
from .models import CandidateIssue, EnrichmentContext, ProposedIssue
from .scorer import classify_score
from .text_processing import lexical_similarity

if TYPE_CHECKING:
    from llm.src.adapters import CompletionEngine
    from tracker.src.search import IssueSearchClient

log = get_logger("shared", "deduplication.utils")


def get_duplicate_analyzer(
    config: TriageConfig,
    search_client: "IssueSearchClient",
    engine: Optional["CompletionEngine"] = None,
) -> DuplicateAnalyzer:
    """
    Factory function to create a DuplicateAnalyzer from configuration.

    Args:
        config: Session configuration (repositories and dedup settings)
        search_client: Tracker search client
        engine: Completion engine to use as the similarity judge

    Returns:
        Configured DuplicateAnalyzer
    """
    analyzer = DuplicateAnalyzer(
        search_client,
        config.repositories,
        engine,
        max_results=config.max_results,
        use_ai_judge=config.use_ai_judge,
        search_concurrency=config.search_concurrency,
        scoring_concurrency=config.scoring_concurrency,
    )

    log.info(
        "deduplication.analyzer.initialized",
        repositories=config.repositories,
        engine=engine.name if engine is not None else None,
        use_ai_judge=config.use_ai_judge,
        max_results=config.max_results,
        search_concurrency=analyzer.search_concurrency,
        scoring_concurrency=analyzer.scoring_concurrency,
    )
    return analyzer


def quick_similarity(
    title: str,
    body: str,
    candidate: CandidateIssue,
    error_messages: str = "",
    app_id: str = "",
) -> tuple[float, str]:
    """
    One-shot lexical score and relationship for a candidate.

    Returns:
        (score, relationship_type value)
    """
    score = lexical_similarity(
        ProposedIssue(title=title, body=body),
        EnrichmentContext(error_messages=error_messages, app_id=app_id),
        candidate,
    )
    relationship, _ = classify_score(score)
    return score, relationship.value
