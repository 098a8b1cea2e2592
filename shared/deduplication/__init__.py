"""
Duplicate-issue detection for triage.

Given a proposed issue and its enrichment, finds existing tracker issues
that describe the same problem:

1. Query generation - short recall-oriented queries per problem category
2. Tracker search - one search per query, bounded concurrency
3. Dedup - unique by candidate id, first occurrence wins
4. Scoring - AI judge per candidate, lexical formula as fallback
5. Ranking - by score, truncated to max_results

Usage:
    from shared.deduplication import get_duplicate_analyzer, ProposedIssue, EnrichmentContext

    analyzer = get_duplicate_analyzer(config, search_client, engine)
    result = await analyzer.analyze(
        ProposedIssue(title="Messenger not loading", body="..."),
        EnrichmentContext(app_id="abc123", error_messages="500 Internal Server Error"),
    )
    for scored in result.analyzed_issues:
        print(scored.issue.number, scored.similarity_score, scored.relationship_type.value)
"""

# Models
from .models import (
    AnalysisResult,
    AnalysisState,
    CandidateIssue,
    EnrichmentContext,
    ProposedIssue,
    RelationshipType,
    ScoredCandidate,
    SimilarityJudgment,
    SuggestedAction,
)

# Orchestrator
from .analyzer import (
    AnalysisRun,
    DuplicateAnalyzer,
)

# Scoring
from .scorer import (
    SimilarityScorer,
    classify_score,
)

# Query generation
from .queries import (
    detect_problem_categories,
    generate_search_queries,
)

# Text processing functions
from .text_processing import (
    extract_keywords,
    jaccard_similarity,
    lexical_similarity,
)

# LLM prompts
from .llm_prompts import (
    build_similarity_prompt,
    extract_json_object,
    parse_similarity_response,
)

# Utility functions
from .utils import (
    get_duplicate_analyzer,
    quick_similarity,
)

__all__ = [
    # Models
    "AnalysisResult",
    "AnalysisState",
    "CandidateIssue",
    "EnrichmentContext",
    "ProposedIssue",
    "RelationshipType",
    "ScoredCandidate",
    "SimilarityJudgment",
    "SuggestedAction",
    # Orchestrator
    "AnalysisRun",
    "DuplicateAnalyzer",
    # Scoring
    "SimilarityScorer",
    "classify_score",
    # Query generation
    "detect_problem_categories",
    "generate_search_queries",
    # Text processing
    "extract_keywords",
    "jaccard_similarity",
    "lexical_similarity",
    # LLM prompts
    "build_similarity_prompt",
    "extract_json_object",
    "parse_similarity_response",
    # Utils
    "get_duplicate_analyzer",
    "quick_similarity",
]
