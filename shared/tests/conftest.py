"""Shared fixtures for duplicate-analysis tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.deduplication.models import CandidateIssue, EnrichmentContext, ProposedIssue


def make_candidate(issue_id: int, title: str = "", body: str = "", **kwargs) -> CandidateIssue:
    """Build a candidate with sensible defaults."""
    return CandidateIssue(
        id=issue_id,
        number=kwargs.pop("number", issue_id),
        title=title or f"Issue {issue_id}",
        body=body,
        **kwargs,
    )


@pytest.fixture
def proposed_issue():
    return ProposedIssue(
        title="Messenger widget not loading",
        body="The messenger widget is not loading on the customer site. Console shows 500 error.",
        labels=("intercom", "bug"),
    )


@pytest.fixture
def enrichment():
    return EnrichmentContext(
        error_messages="500 Internal Server Error from api",
        app_id="abc123",
    )


@pytest.fixture
def mock_engine():
    """A completion engine whose replies the test sets."""
    engine = MagicMock()
    engine.name = "OpenAI gpt-4"
    engine.complete = AsyncMock()
    return engine


@pytest.fixture
def mock_search_client():
    """A search client returning canned results per query."""
    client = MagicMock()
    client.search = AsyncMock(return_value=[])
    return client
