"""
Text processing functions for duplicate-issue analysis.

Contains:
- Keyword extraction
- Word-set Jaccard similarity
- The lexical similarity formula used when no AI judgment is available
"""

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CandidateIssue, EnrichmentContext, ProposedIssue


MAX_KEYWORDS = 20

# Common words to ignore in keyword extraction
STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "is", "are", "was", "were", "be", "been", "have",
    "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "can", "cannot", "this", "that", "these", "those",
    "i", "you", "he", "she", "it", "we", "they", "my", "your", "his",
    "her", "its", "our", "their",
})

# Lexical formula weights
TITLE_WEIGHT = 0.4
BODY_WEIGHT = 0.3
ERROR_WEIGHT = 0.2
APP_ID_WEIGHT = 0.1


def strip_punctuation(text: str) -> str:
    """Remove everything that is not a word character or whitespace."""
    return re.sub(r"[^\w\s]", "", text)


def extract_keywords(text: str, max_keywords: int = MAX_KEYWORDS) -> list[str]:
    """
    Extract keywords from free text.

    Punctuation is stripped, text lowercased and split on whitespace; tokens
    of length <= 2 and stop words are dropped. Order is first occurrence and
    the result is capped at `max_keywords`.

    Returns:
        List of lowercase tokens (may contain repeats, never more than 20)
    """
    words = strip_punctuation(text.lower()).split()
    keywords = [w for w in words if len(w) > 2 and w not in STOP_WORDS]
    return keywords[:max_keywords]


def word_set(text: str) -> set[str]:
    """Lowercased whitespace-separated words."""
    return set(text.lower().split())


def jaccard_similarity(text1: str, text2: str) -> float:
    """
    Jaccard similarity between the word sets of two texts.

    Symmetric. Returns 1.0 for identical non-empty text and 0.0 when either
    side has no words.
    """
    words1 = word_set(text1)
    words2 = word_set(text2)
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / len(words1 | words2)


def lexical_similarity(
    issue: "ProposedIssue",
    context: "EnrichmentContext",
    candidate: "CandidateIssue",
) -> float:
    """
    Weighted lexical similarity between a new issue and a candidate.

    0.4 * title + 0.3 * body + 0.2 * (error text vs candidate body)
    + 0.1 if the app id appears in the candidate body.

    Returns:
        Score in [0, 1]
    """
    title_similarity = jaccard_similarity(issue.title, candidate.title)
    body_similarity = jaccard_similarity(issue.body, candidate.body)

    error_similarity = 0.0
    if context.error_messages:
        error_similarity = jaccard_similarity(context.error_messages, candidate.body)

    app_id_match = 0.0
    if context.app_id and context.app_id in candidate.body:
        app_id_match = 1.0

    score = (
        title_similarity * TITLE_WEIGHT +
        body_similarity * BODY_WEIGHT +
        error_similarity * ERROR_WEIGHT +
        app_id_match * APP_ID_WEIGHT
    )
    return min(1.0, max(0.0, score))
