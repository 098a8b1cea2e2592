"""Shared fixtures for LLM library tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from helpdesk.src.models import Author, AuthorRole, Conversation, Message


def chat_completion_context(status=200, json_data=None, headers=None):
    """An async context manager yielding a chat-completions response."""
    resp = MagicMock()
    resp.status = status
    resp.headers = headers or {}
    resp.json = AsyncMock(return_value=json_data)

    mock_context = MagicMock()
    mock_context.__aenter__ = AsyncMock(return_value=resp)
    mock_context.__aexit__ = AsyncMock(return_value=None)
    return mock_context


def completion_body(text: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


@pytest.fixture
def mock_http_session():
    """Create a mock aiohttp ClientSession."""
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    return session


@pytest.fixture
def mock_anthropic_client():
    """Create a mock Anthropic client."""
    client = MagicMock()
    response = MagicMock()
    response.content = [MagicMock(type="text", text="Claude response")]
    client.messages.create = MagicMock(return_value=response)
    return client


@pytest.fixture
def conversation():
    when = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
    return Conversation(
        id="12345",
        title="Messenger broken",
        customer_name="Jordan",
        customer_email="jordan@example.com",
        created_at=when,
        updated_at=when,
        status="open",
        messages=[
            Message(
                id="source",
                author=Author("Jordan", AuthorRole.CUSTOMER),
                body="The messenger does not load, console shows 500",
                created_at=when,
            ),
            Message(
                id="p1",
                author=Author("Sam", AuthorRole.ADMIN),
                body="Thanks, I'm logging this as a bug for engineering.",
                created_at=when,
            ),
        ],
        tags=["messenger"],
        custom_attributes={"Brand": "Acme"},
    )
