"""
Similarity scoring between a new issue and one candidate.

The AI path asks a completion engine for a JSON judgment. When the judge is
disabled, missing, fails or replies with something unparsable, the lexical
formula from text_processing is used instead.
"""

from typing import TYPE_CHECKING, Optional

from shared.logging import get_logger

from .llm_prompts import build_similarity_prompt, parse_similarity_response
from .models import (
    CandidateIssue,
    EnrichmentContext,
    ProposedIssue,
    RelationshipType,
    SimilarityJudgment,
    SuggestedAction,
)
from .text_processing import lexical_similarity

if TYPE_CHECKING:
    from llm.src.adapters import CompletionEngine

log = get_logger("shared", "deduplication.scorer")

DUPLICATE_THRESHOLD = 0.8
RELATED_THRESHOLD = 0.6

ENGINE_AI = "ai"
ENGINE_LEXICAL = "lexical"


def classify_score(score: float) -> tuple[RelationshipType, SuggestedAction]:
    """
    Map a similarity score to a relationship and suggested action.

    >= 0.8 is a duplicate to merge; anything lower is a related issue to
    reference.
    """
    if score >= DUPLICATE_THRESHOLD:
        return RelationshipType.DUPLICATE, SuggestedAction.MERGE
    return RelationshipType.RELATED, SuggestedAction.REFERENCE


def describe_lexical_match(
    score: float,
    issue: ProposedIssue,
    context: EnrichmentContext,
    candidate: CandidateIssue,
) -> str:
    """Human-readable reasons for a lexical score."""
    reasons = []

    if context.app_id and context.app_id in candidate.body:
        reasons.append(f"Same App ID ({context.app_id}) mentioned")

    if score >= DUPLICATE_THRESHOLD:
        reasons.append("Very high similarity in title and content")
    elif score >= RELATED_THRESHOLD:
        reasons.append("Significant similarity in problem description")

    if context.error_messages:
        candidate_text = f"{candidate.title} {candidate.body}".lower()
        matching = [
            word for word in context.error_messages.lower().split()
            if len(word) > 3 and word in candidate_text
        ]
        if matching:
            reasons.append(f"Similar error patterns: {', '.join(matching[:3])}")

    issue_labels = [label.lower() for label in issue.labels]
    for label in candidate.labels:
        label = label.lower()
        if any(label in own or own in label for own in issue_labels):
            reasons.append("Related labels and categorization")
            break

    if candidate.state == "closed":
        reasons.append("Issue was previously resolved")

    if reasons:
        return ". ".join(reasons) + "."
    return f"Found through keyword matching with {round(score * 100)}% content similarity."


class SimilarityScorer:
    """
    Scores candidates against a new issue.

    Args:
        engine: Completion engine used as the AI judge (None = lexical only)
    """

    def __init__(self, engine: Optional["CompletionEngine"] = None):
        self.engine = engine

    @property
    def has_judge(self) -> bool:
        return self.engine is not None

    def lexical(
        self,
        issue: ProposedIssue,
        context: EnrichmentContext,
        candidate: CandidateIssue,
        reasoning: Optional[str] = None,
    ) -> SimilarityJudgment:
        """Score with the lexical formula only."""
        score = lexical_similarity(issue, context, candidate)
        if reasoning is None:
            reasoning = describe_lexical_match(score, issue, context, candidate)
        return SimilarityJudgment(score=score, reasoning=reasoning, engine=ENGINE_LEXICAL)

    async def score(
        self,
        issue: ProposedIssue,
        context: EnrichmentContext,
        candidate: CandidateIssue,
        use_ai_judge: bool = True,
    ) -> SimilarityJudgment:
        """
        Score one candidate.

        Never raises for judge failures; those fall back to the lexical
        formula with a reasoning string that says so.
        """
        if not use_ai_judge or self.engine is None:
            return self.lexical(issue, context, candidate)

        prompt = build_similarity_prompt(issue, context, candidate)
        try:
            response = await self.engine.complete(prompt)
            reply = parse_similarity_response(response)
        except Exception as e:
            log.warning(
                "deduplication.scorer.ai_failed",
                candidate=candidate.number,
                engine=getattr(self.engine, "name", "unknown"),
                error=str(e),
                error_type=type(e).__name__,
            )
            return self.lexical(
                issue,
                context,
                candidate,
                reasoning=f"Fallback to lexical similarity (AI analysis failed: {e})",
            )

        log.debug(
            "deduplication.scorer.ai_scored",
            candidate=candidate.number,
            score=reply.similarity_score,
            relationship=reply.relationship_type,
        )
        return SimilarityJudgment(
            score=reply.similarity_score,
            reasoning=reply.reasoning or "No reasoning provided",
            engine=ENGINE_AI,
            confidence=reply.confidence,
        )
