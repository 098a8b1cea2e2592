"""
Issue template.

Renders the fixed markdown layout support engineers use for bug reports,
and turns a filled template into the `ProposedIssue` and
`EnrichmentContext` the duplicate analysis works on.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from shared.deduplication.models import EnrichmentContext, ProposedIssue

if TYPE_CHECKING:
    from helpdesk.src.models import Conversation
    from llm.src.models import BugDetectionResult

BASE_LABELS = ("intercom", "bug", "customer-support")
NOT_AVAILABLE = "N/A"
MAX_TITLE_CHARS = 100
DEFAULT_TITLE = "Issue from Intercom conversation"


@dataclass
class IssueTemplateFields:
    """Everything the bug-report template asks for."""
    description: str = ""
    app_id: str = ""
    error_message: str = NOT_AVAILABLE
    affected_scope: str = ""
    timeline: str = ""
    device: str = ""
    browser: str = ""
    operating_system: str = ""
    screenshot_urls: list[str] = field(default_factory=list)
    video_url: str = ""
    user_link: str = ""
    conversation_link: str = ""
    affected_page_link: str = ""
    reproduction_steps: list[str] = field(default_factory=list)
    website: str = ""
    login_credentials: str = ""
    customer_impact: str = "medium"


def render_issue_markdown(fields: IssueTemplateFields) -> str:
    """Render the issue body."""
    screenshots = (
        "\n".join(fields.screenshot_urls)
        if fields.screenshot_urls
        else "No screenshots provided in conversation"
    )
    steps = "\n".join(
        f"**{index}.** {step}"
        for index, step in enumerate(fields.reproduction_steps, start=1)
    )

    return f"""## Description of the issue
{fields.description}

## Issue details

**APP ID:**
{fields.app_id}

**1. What is the error message?** Please write the full error message received by the customer. If there is no error message, write 'N/A'

{fields.error_message}

**2. Is the issue affecting all teammates or just the customer who reported the issue?**

{fields.affected_scope}

**3. When did the issue first occur? Is it happening every time or intermittently? Have they experienced this before, or is this the first time?** Please include timestamp when possible.

{fields.timeline}

**4. What device was the customer was using when they received the error?**
e.g. desktop, phone, tablet

{fields.device}

**5. Which browser (and version) or app version were they using?**

{fields.browser}

**6. What operating system and version were they on?**

{fields.operating_system}

## Evidence
**Screenshots URLs**:
{screenshots}

**[Optional] Replication steps video URL**:
{fields.video_url or NOT_AVAILABLE}

## Links
Please add any relevant links to support this investigation.

Link to the user affected:
{fields.user_link}

Link to the affected conversation:
{fields.conversation_link}

Link to the affected page in Intercom:
{fields.affected_page_link}

## Steps to reproduce
If you can't reproduce the issue yourself, please note reproduction steps that the customer is doing in order to reproduce the issue.

{steps}

If the issue is happening on the customer's website, please provide:

**1. Website:**
{fields.website}

**2. Login credentials:**
{fields.login_credentials}"""


def issue_labels(severity: Optional[str] = None) -> tuple[str, ...]:
    """Base labels plus `severity-<x>` when a severity is known."""
    if severity:
        return BASE_LABELS + (f"severity-{severity}",)
    return BASE_LABELS


def issue_title(fields: IssueTemplateFields, suggested_title: Optional[str] = None) -> str:
    """The classifier's title, else the first description line, else a default."""
    if suggested_title:
        return suggested_title
    first_line = fields.description.split("\n")[0][:MAX_TITLE_CHARS].strip()
    return first_line or DEFAULT_TITLE


def build_proposed_issue(
    fields: IssueTemplateFields,
    suggested_title: Optional[str] = None,
    severity: Optional[str] = None,
    priority: str = "medium",
) -> ProposedIssue:
    return ProposedIssue(
        title=issue_title(fields, suggested_title),
        body=render_issue_markdown(fields),
        labels=issue_labels(severity),
        priority=priority,
    )


def build_enrichment(fields: IssueTemplateFields) -> EnrichmentContext:
    """The enrichment handed to duplicate analysis alongside the issue."""
    error_messages = "" if fields.error_message == NOT_AVAILABLE else fields.error_message
    return EnrichmentContext(
        screenshots=tuple(fields.screenshot_urls),
        additional_steps="\n".join(fields.reproduction_steps),
        technical_details=(
            f"Device: {fields.device}\nBrowser: {fields.browser}\nOS: {fields.operating_system}"
        ),
        error_messages=error_messages,
        browser_info=f"{fields.browser} on {fields.operating_system}".strip(),
        app_id=fields.app_id,
        customer_impact=fields.customer_impact,
    )


def template_from_conversation(
    conversation: "Conversation",
    bug_result: Optional["BugDetectionResult"] = None,
    *,
    app_id: str = "",
    error_message: str = "",
) -> IssueTemplateFields:
    """Prefill the template from a conversation and its classification."""
    description = ""
    customer_impact = "medium"
    if bug_result is not None:
        description = bug_result.initial_analysis.description
        customer_impact = bug_result.initial_analysis.customer_impact or customer_impact
    if not description:
        first = conversation.first_customer_message
        description = first.body if first else conversation.title

    screenshot_urls = [
        attachment.url
        for message in conversation.messages
        for attachment in message.attachments
        if attachment.url and attachment.content_type.startswith("image/")
    ]

    return IssueTemplateFields(
        description=description,
        app_id=app_id,
        error_message=error_message or NOT_AVAILABLE,
        affected_scope=conversation.customer_name,
        timeline=conversation.created_at.strftime("%Y-%m-%d %H:%M UTC"),
        screenshot_urls=screenshot_urls,
        conversation_link=f"Intercom conversation {conversation.id}",
        customer_impact=customer_impact,
    )
