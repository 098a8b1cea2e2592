"""Shared fixtures for helpdesk tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

CREATED_AT = 1_700_000_000


@pytest.fixture
def raw_conversation():
    """A realistic Intercom conversation payload."""
    return {
        "type": "conversation",
        "id": "12345",
        "created_at": CREATED_AT,
        "updated_at": CREATED_AT + 600,
        "state": "open",
        "priority": "not_priority",
        "source": {
            "subject": "",
            "body": "<p>Hi, our messenger is <b>not loading</b> on the site.</p>",
            "author": {"type": "user", "name": "Old Contact", "email": "old@example.com"},
            "attachments": [
                {"name": "screen.png", "url": "https://files.example.com/screen.png", "content_type": "image/png"},
            ],
        },
        "contacts": {
            "type": "contact.list",
            "contacts": [{"type": "contact", "id": "c1", "name": "Listed Contact", "email": "listed@example.com"}],
        },
        "conversation_parts": {
            "type": "conversation_part.list",
            "conversation_parts": [
                {
                    "id": "p2",
                    "part_type": "comment",
                    "body": "<p>Sorry to hear that, logging this as a bug.</p>",
                    "created_at": CREATED_AT + 120,
                    "author": {"type": "admin", "name": "Sam Support", "email": "sam@support.example.com"},
                },
                {
                    "id": "p1",
                    "part_type": "comment",
                    "body": "<p>It shows a blank box &amp; a 500 error.</p>",
                    "created_at": CREATED_AT + 60,
                    "author": {"type": "user", "name": "Jordan Customer", "email": "jordan@example.com"},
                },
                {
                    "id": "p3",
                    "part_type": "assignment",
                    "body": "<p>Assigned</p>",
                    "created_at": CREATED_AT + 180,
                    "author": {"type": "bot", "name": "Operator"},
                },
                {
                    "id": "p4",
                    "part_type": "comment",
                    "body": "",
                    "created_at": CREATED_AT + 240,
                    "author": {"type": "user", "name": "Jordan Customer"},
                },
            ],
        },
        "tags": {"type": "tag.list", "tags": [{"type": "tag", "name": "messenger"}]},
        "custom_attributes": {
            "Query Type": "Technical",
            "Brand": "Acme",
            "AI Issue summary": "Messenger fails to load",
        },
    }


@pytest.fixture
def mock_http_session():
    """Create a mock aiohttp ClientSession."""
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    return session


def mock_response(session, status=200, json_data=None, text="", headers=None):
    """Make session.get return a context manager yielding a response."""
    resp = MagicMock()
    resp.status = status
    resp.headers = headers or {}
    resp.json = AsyncMock(return_value=json_data)
    resp.text = AsyncMock(return_value=text)

    mock_context = MagicMock()
    mock_context.__aenter__ = AsyncMock(return_value=resp)
    mock_context.__aexit__ = AsyncMock(return_value=None)
    session.get = MagicMock(return_value=mock_context)
    return resp
