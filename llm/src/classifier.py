"""
Bug classifier and issue drafter.

Asks an LLM whether a normalized conversation describes a software bug,
and, once the operator has confirmed and enriched it, to draft the issue.
Both are single-shot calls: failures propagate as typed errors, and an
unparsable reply raises AnalysisUnparsableError instead of being guessed.
"""

from typing import Optional

from helpdesk.src.models import Conversation
from helpdesk.src.normalizer import format_conversation_for_analysis
from shared.deduplication.models import EnrichmentContext
from shared.logging import get_logger

from .adapters import raise_for_response
from .client import LLMClient
from .models import Backend, BugDetectionResult, IssueDraft
from .prompts import (
    BUG_DETECTION_SYSTEM_PROMPT,
    ISSUE_GENERATION_SYSTEM_PROMPT,
    build_bug_detection_prompt,
    build_issue_generation_prompt,
    parse_bug_detection_response,
    parse_issue_generation_response,
)

log = get_logger("llm", "classifier")


class BugClassifier:
    """
    Classifies conversations and drafts issues.

    Usage:
        classifier = BugClassifier(client, backend="openai")
        result = await classifier.classify(conversation)
        if result.is_bug:
            draft = await classifier.draft_issue(conversation, context)
    """

    def __init__(
        self,
        client: LLMClient,
        backend: str = Backend.OPENAI.value,
        model: Optional[str] = None,
        timeout_seconds: float = 30,
    ):
        self.client = client
        self.backend = backend
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def classify(self, conversation: Conversation) -> BugDetectionResult:
        """
        Decide whether a conversation describes a bug.

        Raises:
            AnalysisUnparsableError: If the reply is not the requested JSON
            RemoteAuthError, RateLimitedError, RequestTimeoutError, LLMError
        """
        prompt = build_bug_detection_prompt(
            format_conversation_for_analysis(conversation),
            conversation.customer_name,
            conversation.customer_email,
            conversation.status,
            conversation.tags,
            conversation.custom_attributes,
        )

        log.info("llm.classify.start", conversation_id=conversation.id, backend=self.backend)

        response = await self.client.send(
            self.backend,
            prompt,
            system=BUG_DETECTION_SYSTEM_PROMPT,
            model=self.model,
            temperature=0.2,
            max_tokens=1000,
            timeout_seconds=self.timeout_seconds,
        )
        result = parse_bug_detection_response(raise_for_response(response))

        log.info(
            "llm.classify.complete",
            conversation_id=conversation.id,
            is_bug=result.is_bug,
            confidence=result.confidence,
            bug_type=result.bug_type,
            severity=result.severity,
        )
        return result

    async def draft_issue(
        self,
        conversation: Conversation,
        context: EnrichmentContext,
    ) -> IssueDraft:
        """
        Draft an issue for a confirmed bug.

        Raises:
            AnalysisUnparsableError: If the reply is not the requested JSON
            RemoteAuthError, RateLimitedError, RequestTimeoutError, LLMError
        """
        prompt = build_issue_generation_prompt(
            format_conversation_for_analysis(conversation),
            context,
            conversation.id,
            conversation.customer_name,
            conversation.customer_email,
            conversation.created_at.isoformat(),
        )

        response = await self.client.send(
            self.backend,
            prompt,
            system=ISSUE_GENERATION_SYSTEM_PROMPT,
            model=self.model,
            temperature=0.3,
            max_tokens=2000,
            timeout_seconds=self.timeout_seconds,
        )
        draft = parse_issue_generation_response(raise_for_response(response))

        log.info(
            "llm.draft.complete",
            conversation_id=conversation.id,
            title=draft.issue.title[:80],
            confidence=draft.confidence,
        )
        return draft
