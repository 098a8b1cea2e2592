"""
Prompts and reply parsing for bug classification and issue drafting.

Replies are JSON; they are validated with pydantic models that carry the
same defaults the rest of the pipeline expects when the model leaves a
field out.
"""

import json
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from shared.deduplication.llm_prompts import extract_json_object
from shared.deduplication.models import EnrichmentContext, ProposedIssue
from shared.errors import AnalysisUnparsableError

from .models import BugDetectionResult, InitialAnalysis, IssueDraft

BUG_DETECTION_SYSTEM_PROMPT = """You are an expert Technical Support Engineer who analyzes customer conversations to determine if they require GitHub issue creation.

Your primary task is to determine if a conversation represents a genuine bug/technical issue that needs engineering attention, or if it's a general inquiry, feature request, or resolved issue.

CRITICAL ANALYSIS CRITERIA:

**STRONG BUG INDICATORS:**
- Agent explicitly mentions "logging this as a bug", "creating a ticket", "escalating to engineering"
- Customer reports functionality that is "not working", "broken", "failing"
- Error messages, error codes, or system failures mentioned
- Unexpected behavior vs. documented functionality
- Agent acknowledges the issue and suggests internal follow-up
- Tags indicating "bug", "issue", "error", "broken"

**NOT A BUG INDICATORS:**
- General "how to" questions
- Feature requests or suggestions for improvements
- Questions about pricing, billing, or account management
- Issues resolved through explanation or user education
- Customer satisfaction achieved without identifying system problems

**ANALYSIS PROCESS:**
1. Examine agent responses for escalation language
2. Look for customer reports of non-functioning features
3. Check conversation tags and custom attributes for issue indicators
4. Assess if the agent treated this as a technical problem requiring internal action
5. Determine if this needs engineering investigation vs. customer education

Return your response as a JSON object:
{
  "isBug": true/false,
  "confidence": 0.0-1.0,
  "reasoning": "Detailed explanation of why this is/isn't a bug",
  "bugType": "bug|feature|question|resolved",
  "severity": "low|medium|high",
  "keyIndicators": ["list", "of", "indicators", "found"],
  "agentEscalation": "Did the agent indicate this needs internal follow-up?",
  "initialAnalysis": {
    "title": "Brief issue title if bug",
    "description": "What is the core problem?",
    "customerImpact": "How is this affecting the customer?"
  }
}

If isBug is false, provide clear reasoning and stop analysis there.
If isBug is true, provide initial analysis for the GitHub issue creation process."""

ISSUE_GENERATION_SYSTEM_PROMPT = """You are an expert Technical Support Engineer creating a GitHub issue from a confirmed bug report.

You have additional context provided by the support engineer including screenshots, reproduction steps, and technical details.

Create a GitHub issue with these sections, in this order:

## Description of the issue
## Issue details (APP ID, error message, affected scope, first occurrence, device, browser, operating system)
## Evidence
## Links
## Steps to reproduce

Use the enhanced information provided to fill in as many details as possible. Write 'N/A' where nothing is known.

Return as JSON:
{
  "issueTemplate": {
    "title": "Clear, specific issue title",
    "body": "Full template following the format above",
    "labels": ["appropriate", "labels"],
    "priority": "low|medium|high"
  },
  "confidence": 0.8,
  "summary": "Brief summary of the issue"
}"""


class _Reply(BaseModel):
    """Treats explicit nulls as missing so field defaults apply."""

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data):
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class InitialAnalysisReply(_Reply):
    title: str = "Issue from conversation"
    description: str = "No description available"
    customerImpact: str = "Unknown impact"


class BugDetectionReply(_Reply):
    """JSON shape of a bug-detection reply."""
    isBug: bool = False
    confidence: float = 0.5
    reasoning: str = "Analysis completed"
    bugType: str = "question"
    severity: str = "medium"
    keyIndicators: list[str] = Field(default_factory=list)
    agentEscalation: str = "Not indicated"
    initialAnalysis: InitialAnalysisReply = Field(default_factory=InitialAnalysisReply)

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, value):
        return min(1.0, max(0.0, float(value)))

    @field_validator("severity")
    @classmethod
    def normalize_severity(cls, value):
        value = (value or "medium").lower()
        return value if value in ("low", "medium", "high") else "medium"

    def to_result(self) -> BugDetectionResult:
        return BugDetectionResult(
            is_bug=self.isBug,
            confidence=self.confidence,
            reasoning=self.reasoning,
            bug_type=self.bugType,
            severity=self.severity,
            key_indicators=list(self.keyIndicators),
            agent_escalation=self.agentEscalation,
            initial_analysis=InitialAnalysis(
                title=self.initialAnalysis.title,
                description=self.initialAnalysis.description,
                customer_impact=self.initialAnalysis.customerImpact,
            ),
        )


class IssueTemplateReply(_Reply):
    title: str = "Issue from conversation"
    body: str = "No description available"
    labels: list[str] = Field(default_factory=lambda: ["support", "customer-issue"])
    priority: str = "medium"


class IssueGenerationReply(_Reply):
    """JSON shape of an issue-generation reply."""
    issueTemplate: IssueTemplateReply = Field(default_factory=IssueTemplateReply)
    confidence: float = 0.8
    summary: str = "GitHub issue generated"

    def to_draft(self) -> IssueDraft:
        template = self.issueTemplate
        return IssueDraft(
            issue=ProposedIssue(
                title=template.title,
                body=template.body,
                labels=tuple(template.labels),
                priority=template.priority,
            ),
            summary=self.summary,
            confidence=min(1.0, max(0.0, self.confidence)),
        )


def build_bug_detection_prompt(
    conversation_text: str,
    customer_name: str,
    customer_email: str,
    status: str,
    tags: list[str],
    custom_attributes: dict,
) -> str:
    """User prompt for bug detection."""
    return f"""Analyze this Intercom conversation to determine if it represents a bug requiring GitHub issue creation.

CONVERSATION DATA:
{conversation_text}

CONVERSATION CONTEXT:
- Customer: {customer_name} ({customer_email})
- Status: {status}
- Tags: {', '.join(tags) or 'None'}
- Custom Attributes: {json.dumps(custom_attributes or {}, indent=2, default=str)}

Focus on agent language, escalation signals, error reports, and technical issues that would require engineering investigation."""


def build_issue_generation_prompt(
    conversation_text: str,
    context: EnrichmentContext,
    conversation_id: str,
    customer_name: str,
    customer_email: str,
    created_at: str,
) -> str:
    """User prompt for drafting an issue from a confirmed bug."""
    screenshots = ", ".join(context.screenshots) or "None"
    return f"""Create a GitHub issue using the enhanced context provided by the support engineer.

ORIGINAL CONVERSATION:
{conversation_text}

ENHANCED CONTEXT:
- Screenshots: {screenshots}
- Additional Steps: {context.additional_steps or 'None provided'}
- Technical Details: {context.technical_details or 'None provided'}
- Error Messages: {context.error_messages or 'None provided'}
- Browser/Device Info: {context.browser_info or 'None provided'}
- App ID: {context.app_id or 'Not provided'}

CONVERSATION DETAILS:
- Customer: {customer_name} ({customer_email})
- Conversation ID: {conversation_id}
- Created: {created_at}

Use all available information to create a comprehensive GitHub issue."""


def _parse(model: type[BaseModel], response: Optional[str], what: str):
    try:
        return model.model_validate(extract_json_object(response or ""))
    except (ValueError, ValidationError) as e:
        raise AnalysisUnparsableError(
            f"Failed to parse {what} results: {e}",
            raw_response=(response or "")[:500],
        ) from e


def parse_bug_detection_response(response: Optional[str]) -> BugDetectionResult:
    """
    Raises:
        AnalysisUnparsableError: If the reply is not a usable JSON object
    """
    return _parse(BugDetectionReply, response, "bug detection").to_result()


def parse_issue_generation_response(response: Optional[str]) -> IssueDraft:
    """
    Raises:
        AnalysisUnparsableError: If the reply is not a usable JSON object
    """
    return _parse(IssueGenerationReply, response, "GitHub issue").to_draft()
