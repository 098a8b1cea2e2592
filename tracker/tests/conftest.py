"""Shared fixtures for tracker tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest


def issue_json(issue_id: int, number: int = None, title: str = "", **extra) -> dict:
    """A GitHub issue as the REST API returns it."""
    data = {
        "id": issue_id,
        "number": number or issue_id,
        "title": title or f"Issue {issue_id}",
        "body": "Body text",
        "state": "open",
        "labels": [{"name": "bug"}],
        "created_at": "2024-01-01T10:00:00Z",
        "updated_at": "2024-01-02T10:00:00Z",
        "html_url": f"https://github.com/acme/messenger/issues/{number or issue_id}",
        "repository_url": "https://api.github.com/repos/acme/messenger",
        "user": {"login": "reporter"},
        "assignees": [{"login": "dev1"}],
    }
    data.update(extra)
    return data


def make_response(status=200, json_data=None, text="", headers=None):
    resp = MagicMock()
    resp.status = status
    resp.headers = headers or {}
    resp.json = AsyncMock(return_value=json_data)
    resp.text = AsyncMock(return_value=text)

    mock_context = MagicMock()
    mock_context.__aenter__ = AsyncMock(return_value=resp)
    mock_context.__aexit__ = AsyncMock(return_value=None)
    return mock_context


def mock_request(session, *responses):
    """Queue responses for session.request, one per call."""
    session.request = MagicMock(side_effect=list(responses))


@pytest.fixture
def mock_http_session():
    """Create a mock aiohttp ClientSession."""
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    return session
