"""
Search query generation for duplicate-issue analysis.

Duplicate bug reports are rarely worded the same way, so instead of one
precise query we produce a handful of short ones covering the problem
categories the report touches, plus some generic terms.
"""

import re

from shared.logging import get_logger

from .models import EnrichmentContext, ProposedIssue

log = get_logger("shared", "deduplication.queries")

MAX_QUERIES = 8
FALLBACK_QUERIES = ["error", "issue", "bug"]

PROBLEM_PATTERNS = {
    "loading_issues": ["not loading", "not showing", "not displaying", "not appearing", "missing", "blank"],
    "error_patterns": ["error", "failed", "failure", "broken", "issue", "problem"],
    "server_issues": ["server error", "internal error", "500", "502", "503", "504", "backend", "api error"],
    "auth_issues": ["authentication", "login", "signin", "unauthorized", "401", "403"],
    "ui_components": ["messenger", "widget", "chat", "popup", "modal", "button", "form"],
}

LOADING_QUERIES = ["not showing", "not loading", "not displaying", "not appearing"]
SERVER_QUERIES = ["server error", "internal error", "500 error", "backend error", "api error"]
AUTH_QUERIES = ["authentication", "login", "unauthorized", "401"]
GENERIC_QUERIES = ["error", "issue", "problem", "bug", "failed", "broken"]

TECHNICAL_TERMS = re.compile(
    r"\b(api|widget|messenger|chat|authentication|login|webhook|integration|popup|modal|"
    r"iframe|script|cdn|cors|ssl|tls|oauth|jwt|session|cookie|token)\b",
    re.IGNORECASE,
)
ERROR_TERMS = re.compile(
    r"\b(error|exception|failed|timeout|refused|forbidden|unauthorized|not found|bad request)\b",
    re.IGNORECASE,
)


def detect_problem_categories(text: str) -> list[str]:
    """Categories whose patterns appear (as substrings) in the lowercased text."""
    text = text.lower()
    return [
        category
        for category, patterns in PROBLEM_PATTERNS.items()
        if any(pattern in text for pattern in patterns)
    ]


def _unique_matches(pattern: re.Pattern, text: str, limit: int) -> list[str]:
    seen = []
    for match in pattern.findall(text):
        term = match.lower()
        if term not in seen:
            seen.append(term)
    return seen[:limit]


def generate_search_queries(
    issue: ProposedIssue,
    context: EnrichmentContext,
) -> list[str]:
    """
    Turn a proposed issue into tracker search queries.

    Args:
        issue: The new issue (title and body are scanned)
        context: Enrichment (error text and app id are used)

    Returns:
        Distinct queries in priority order, at most 8, never empty
    """
    full_text = f"{issue.title.lower()} {issue.body.lower()}"
    categories = detect_problem_categories(full_text)

    queries = []

    if "loading_issues" in categories and "ui_components" in categories:
        queries.extend(LOADING_QUERIES)

    if "server_issues" in categories:
        queries.extend(SERVER_QUERIES)

    if "auth_issues" in categories:
        queries.extend(AUTH_QUERIES)

    queries.extend(_unique_matches(TECHNICAL_TERMS, full_text, 3))

    queries.extend(GENERIC_QUERIES)

    if "messenger" in full_text or "chat" in full_text:
        queries.extend(["messenger", "chat"])
    if "widget" in full_text or "popup" in full_text:
        queries.extend(["widget", "popup"])

    error_text = context.error_messages or ""
    if len(error_text) > 10:
        queries.extend(_unique_matches(ERROR_TERMS, error_text, 2))

    if context.app_id and len(queries) > 3:
        queries.append(context.app_id)

    cleaned = []
    for query in queries:
        query = query.strip()
        if 2 < len(query) < 50 and query not in cleaned:
            cleaned.append(query)
    cleaned = cleaned[:MAX_QUERIES]

    log.debug(
        "deduplication.queries.generated",
        title=issue.title[:80],
        categories=categories,
        queries=cleaned,
    )

    return cleaned if cleaned else list(FALLBACK_QUERIES)
