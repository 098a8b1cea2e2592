"""
Conversation normalizer.

Turns a raw Intercom conversation payload into a `Conversation`: resolves
who the customer really is, keeps only visible messages as plain text,
derives tags from custom attributes and infers a priority. Pure functions,
no I/O.
"""

import html
import re
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from shared.errors import MalformedInputError
from shared.logging import get_logger

from .models import Attachment, Author, AuthorRole, Conversation, Message, Priority

log = get_logger("helpdesk", "normalizer")

UNTITLED = "Untitled Conversation"
UNKNOWN_CUSTOMER = "Unknown Customer"
UNKNOWN_AUTHOR = "Unknown"

CX_RATING_ATTRIBUTE = "Customer Experience (CX) rating"
LOW_CX_RATING = 2

MESSAGE_SEPARATOR = "\n\n---\n\n"

BLOCK_BREAK_PATTERN = re.compile(r"<\s*(br|/p|/div|/li|/h\d)\s*/?\s*>", re.IGNORECASE)
TAG_PATTERN = re.compile(r"<[^>]*>")
SPACES_PATTERN = re.compile(r"[ \t\r\f\v]+")


def strip_html(body: Optional[str]) -> str:
    """Plain text from an HTML message body."""
    if not body:
        return ""
    text = BLOCK_BREAK_PATTERN.sub("\n", body)
    text = TAG_PATTERN.sub("", text)
    text = html.unescape(text)
    lines = [SPACES_PATTERN.sub(" ", line).strip() for line in text.split("\n")]
    return "\n".join(line for line in lines if line)


def _timestamp(value: Any) -> datetime:
    """Epoch seconds (Intercom's format) to an aware UTC datetime."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        seconds = 0.0
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise MalformedInputError(f"Timestamp {value!r} is out of range") from e


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _source(raw: Mapping) -> Optional[Mapping]:
    source = raw.get("source")
    return source if isinstance(source, Mapping) else None


def _attachments(data: Mapping) -> list[Attachment]:
    return [Attachment.from_api(a) for a in data.get("attachments") or [] if isinstance(a, Mapping)]


def _contacts(raw: Mapping) -> list[dict]:
    contacts = raw.get("contacts")
    # API 2.x wraps the list: {"type": "contact.list", "contacts": [...]}
    if isinstance(contacts, Mapping):
        contacts = contacts.get("contacts")
    return [c for c in contacts or [] if isinstance(c, Mapping)]


def _parts(raw: Mapping) -> list[dict]:
    parts = raw.get("conversation_parts") or {}
    if isinstance(parts, Mapping):
        parts = parts.get("conversation_parts")
    return [p for p in parts or [] if isinstance(p, Mapping)]


def _author(data: Any) -> Author:
    data = _mapping(data)
    return Author(
        name=data.get("name") or UNKNOWN_AUTHOR,
        email=data.get("email") or "",
        role=AuthorRole.normalize(data.get("type")),
    )


def resolve_customer(raw: Mapping) -> tuple[str, str]:
    """
    Work out the customer's name and email.

    The first substantive customer message wins over the listed contact,
    which is sometimes stale; the thread-opening author is the last resort.
    """
    for part in _parts(raw):
        author = _mapping(part.get("author"))
        if AuthorRole.normalize(author.get("type")) == AuthorRole.CUSTOMER and strip_html(part.get("body")):
            return author.get("name") or UNKNOWN_CUSTOMER, author.get("email") or ""

    contacts = _contacts(raw)
    if contacts:
        return contacts[0].get("name") or UNKNOWN_CUSTOMER, contacts[0].get("email") or ""

    source_author = _mapping((_source(raw) or {}).get("author"))
    return source_author.get("name") or UNKNOWN_CUSTOMER, source_author.get("email") or ""


def build_messages(raw: Mapping) -> list[Message]:
    """Visible messages, thread opener first, stably ordered by time."""
    messages = []

    source = _source(raw) or {}
    source_body = strip_html(source.get("body"))
    if source_body:
        messages.append(Message(
            id="source",
            author=_author(source.get("author")),
            body=source_body,
            created_at=_timestamp(raw.get("created_at")),
            attachments=_attachments(source),
        ))

    for part in _parts(raw):
        if part.get("part_type") != "comment":
            continue
        body = strip_html(part.get("body"))
        if not body:
            continue
        messages.append(Message(
            id=str(part.get("id", "")),
            author=_author(part.get("author")),
            body=body,
            created_at=_timestamp(part.get("created_at")),
            attachments=_attachments(part),
        ))

    # sorted() is stable, so equal timestamps keep arrival order
    return sorted(messages, key=lambda m: m.created_at)


def build_tags(raw: Mapping) -> list[str]:
    """Native tags followed by tags derived from custom attributes."""
    tags_data = raw.get("tags") or {}
    if isinstance(tags_data, Mapping):
        tags_data = tags_data.get("tags")
    tags = [
        tag.get("name") if isinstance(tag, Mapping) else str(tag)
        for tag in tags_data or []
    ]
    tags = [t for t in tags if t]

    attributes = _mapping(raw.get("custom_attributes"))
    if attributes.get("Query Type"):
        tags.append(f"Query: {attributes['Query Type']}")
    if attributes.get("AI Issue summary"):
        tags.append("AI Summary Available")
    if attributes.get("Brand"):
        tags.append(f"Brand: {attributes['Brand']}")
    return tags


def _cx_rating(attributes: Mapping) -> Optional[float]:
    value = attributes.get(CX_RATING_ATTRIBUTE)
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def infer_priority(raw: Mapping, tags: list[str]) -> Priority:
    """First match wins: platform flag, low CX rating, urgent tag, low tag."""
    if raw.get("priority") == "priority":
        return Priority.HIGH

    rating = _cx_rating(_mapping(raw.get("custom_attributes")))
    if rating is not None and rating <= LOW_CX_RATING:
        return Priority.HIGH

    lowered = [tag.lower() for tag in tags]
    if any("urgent" in tag or "critical" in tag for tag in lowered):
        return Priority.HIGH
    if any("low" in tag for tag in lowered):
        return Priority.LOW
    return Priority.MEDIUM


def normalize_conversation(raw: Mapping) -> Conversation:
    """
    Normalize a raw conversation payload.

    Raises:
        MalformedInputError: If the payload is not an object, has neither
            a thread-opening message nor any contacts, or carries a
            timestamp outside the representable range
    """
    if not isinstance(raw, Mapping):
        raise MalformedInputError("Conversation payload must be a JSON object")

    source = _source(raw)
    if source is None and not _contacts(raw):
        raise MalformedInputError(
            f"Conversation {raw.get('id', '?')} has no source message and no contacts"
        )

    customer_name, customer_email = resolve_customer(raw)
    messages = build_messages(raw)
    tags = build_tags(raw)

    conversation = Conversation(
        id=str(raw.get("id", "")),
        title=(source or {}).get("subject") or raw.get("title") or UNTITLED,
        customer_name=customer_name,
        customer_email=customer_email,
        created_at=_timestamp(raw.get("created_at")),
        updated_at=_timestamp(raw.get("updated_at")),
        status="closed" if raw.get("state") == "closed" else "open",
        messages=messages,
        tags=tags,
        priority=infer_priority(raw, tags),
        custom_attributes=dict(_mapping(raw.get("custom_attributes"))),
    )

    log.debug(
        "helpdesk.conversation.normalized",
        conversation_id=conversation.id,
        message_count=len(messages),
        tag_count=len(tags),
        priority=conversation.priority.value,
    )
    return conversation


def _format_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_conversation_for_analysis(conversation: Conversation) -> str:
    """Render a conversation as the text block sent to the bug classifier."""
    formatted_messages = []
    for index, message in enumerate(conversation.messages, start=1):
        lines = [
            f"Message {index} [{_format_time(message.created_at)}] - "
            f"{message.author.role.value.upper()}: {message.author.name}",
            message.body,
        ]
        if message.attachments:
            lines.append("Attachments: " + ", ".join(a.name for a in message.attachments))
        formatted_messages.append("\n".join(lines))

    attributes = "\n".join(
        f"- {key}: {value}"
        for key, value in conversation.custom_attributes.items()
        if isinstance(value, str) and value.strip()
    )
    thread = MESSAGE_SEPARATOR.join(formatted_messages)

    return f"""CONVERSATION DETAILS:
- ID: {conversation.id}
- Title: {conversation.title}
- Customer: {conversation.customer_name} ({conversation.customer_email})
- Status: {conversation.status}
- Priority: {conversation.priority.value}
- Tags: {', '.join(conversation.tags) or 'None'}
- Created: {_format_time(conversation.created_at)}
- Updated: {_format_time(conversation.updated_at)}

CUSTOM ATTRIBUTES:
{attributes or 'None'}

CONVERSATION THREAD:
{thread or 'No messages'}"""
