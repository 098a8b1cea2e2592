"""
Helpdesk access for triage.

Fetches Intercom conversations and normalizes them into `Conversation`
records ready for bug classification.

Usage:
    from helpdesk import IntercomClient

    async with IntercomClient(token) as client:
        conversation = await client.get_conversation("12345")
"""

from .src.client import IntercomClient, validate_conversation_id
from .src.models import Attachment, Author, AuthorRole, Conversation, Message, Priority
from .src.normalizer import format_conversation_for_analysis, normalize_conversation

__all__ = [
    "IntercomClient",
    "validate_conversation_id",
    "Attachment",
    "Author",
    "AuthorRole",
    "Conversation",
    "Message",
    "Priority",
    "format_conversation_for_analysis",
    "normalize_conversation",
]
