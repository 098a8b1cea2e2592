"""Tests for the issue template."""

from datetime import datetime, timezone

from helpdesk.src.models import Attachment, Author, AuthorRole, Conversation, Message
from llm.src.models import BugDetectionResult, InitialAnalysis
from tracker.src.template import (
    IssueTemplateFields,
    build_enrichment,
    build_proposed_issue,
    issue_labels,
    render_issue_markdown,
    template_from_conversation,
)

WHEN = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def conversation_with_screenshot() -> Conversation:
    customer = Author(name="Jordan", role=AuthorRole.CUSTOMER)
    return Conversation(
        id="12345",
        title="Help",
        customer_name="Jordan",
        customer_email="jordan@example.com",
        created_at=WHEN,
        updated_at=WHEN,
        status="open",
        messages=[
            Message(
                id="source",
                author=customer,
                body="Widget is blank since this morning",
                created_at=WHEN,
                attachments=[
                    Attachment("shot.png", "https://files.example.com/shot.png", "image/png"),
                    Attachment("log.txt", "https://files.example.com/log.txt", "text/plain"),
                ],
            ),
        ],
    )


class TestRenderIssueMarkdown:

    def test_section_order(self):
        body = render_issue_markdown(IssueTemplateFields(description="Widget blank"))
        sections = [
            "## Description of the issue",
            "## Issue details",
            "## Evidence",
            "## Links",
            "## Steps to reproduce",
        ]
        positions = [body.index(s) for s in sections]
        assert positions == sorted(positions)
        assert body.startswith("## Description of the issue\nWidget blank")

    def test_steps_numbered(self):
        body = render_issue_markdown(IssueTemplateFields(reproduction_steps=["Open site", "Click chat"]))
        assert "**1.** Open site\n**2.** Click chat" in body

    def test_no_screenshots(self):
        body = render_issue_markdown(IssueTemplateFields())
        assert "No screenshots provided in conversation" in body
        assert "**[Optional] Replication steps video URL**:\nN/A" in body


class TestLabelsAndTitle:

    def test_labels_with_severity(self):
        assert issue_labels("high") == ("intercom", "bug", "customer-support", "severity-high")

    def test_labels_without_severity(self):
        assert issue_labels() == ("intercom", "bug", "customer-support")

    def test_title_from_suggestion(self):
        issue = build_proposed_issue(IssueTemplateFields(description="desc"), "Suggested title")
        assert issue.title == "Suggested title"

    def test_title_from_description_first_line(self):
        issue = build_proposed_issue(IssueTemplateFields(description="First line\nSecond line"))
        assert issue.title == "First line"

    def test_title_default(self):
        assert build_proposed_issue(IssueTemplateFields()).title == "Issue from Intercom conversation"


class TestEnrichment:

    def test_na_error_message_is_empty(self):
        assert build_enrichment(IssueTemplateFields()).error_messages == ""

    def test_fields_carried(self):
        context = build_enrichment(IssueTemplateFields(
            app_id="abc123",
            error_message="500 Internal Server Error",
            screenshot_urls=["https://x/1.png"],
            reproduction_steps=["a", "b"],
            browser="Chrome 120",
            operating_system="macOS 14",
        ))
        assert context.app_id == "abc123"
        assert context.error_messages == "500 Internal Server Error"
        assert context.screenshots == ("https://x/1.png",)
        assert context.additional_steps == "a\nb"
        assert context.browser_info == "Chrome 120 on macOS 14"


class TestTemplateFromConversation:

    def test_prefill_from_conversation(self):
        fields = template_from_conversation(conversation_with_screenshot(), app_id="abc123")

        assert fields.description == "Widget is blank since this morning"
        assert fields.screenshot_urls == ["https://files.example.com/shot.png"]
        assert fields.app_id == "abc123"
        assert fields.error_message == "N/A"
        assert fields.timeline == "2024-03-01 09:30 UTC"
        assert fields.conversation_link == "Intercom conversation 12345"

    def test_prefill_from_classification(self):
        result = BugDetectionResult(
            is_bug=True,
            initial_analysis=InitialAnalysis(
                title="Widget blank",
                description="The widget renders an empty frame",
                customer_impact="high",
            ),
        )

        fields = template_from_conversation(conversation_with_screenshot(), result, error_message="Timeout")

        assert fields.description == "The widget renders an empty frame"
        assert fields.customer_impact == "high"
        assert fields.error_message == "Timeout"
