"""Data models for helpdesk conversations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class AuthorRole(str, Enum):
    """Who wrote a message."""
    CUSTOMER = "customer"
    ADMIN = "admin"
    BOT = "bot"

    @classmethod
    def normalize(cls, author_type: Optional[str]) -> "AuthorRole":
        """Map a platform author type; anything unrecognized is a customer."""
        if author_type == "admin":
            return cls.ADMIN
        if author_type == "bot":
            return cls.BOT
        return cls.CUSTOMER


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Author:
    name: str
    role: AuthorRole
    email: str = ""


@dataclass
class Attachment:
    """A file attached to a message."""
    name: str
    url: str = ""
    content_type: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Attachment":
        return cls(
            name=data.get("name") or "",
            url=data.get("url") or "",
            content_type=data.get("content_type") or "",
        )


@dataclass
class Message:
    """One visible message in a conversation. Body is plain text."""
    id: str
    author: Author
    body: str
    created_at: datetime
    attachments: list[Attachment] = field(default_factory=list)


@dataclass
class Conversation:
    """
    A normalized helpdesk conversation.

    Messages are ordered by timestamp; the thread-opening message is first
    among equal timestamps.
    """
    id: str
    title: str
    customer_name: str
    customer_email: str
    created_at: datetime
    updated_at: datetime
    status: str  # "open" or "closed"
    messages: list[Message] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    custom_attributes: dict = field(default_factory=dict)

    @property
    def customer_messages(self) -> list[Message]:
        return [m for m in self.messages if m.author.role == AuthorRole.CUSTOMER]

    @property
    def first_customer_message(self) -> Optional[Message]:
        messages = self.customer_messages
        return messages[0] if messages else None
