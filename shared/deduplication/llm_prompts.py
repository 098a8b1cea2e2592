"""
LLM prompt building and response parsing for similarity judgments.

Contains:
- Similarity prompt building
- JSON extraction from free-form model replies
- Similarity reply parsing
"""

import json
import re
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from shared.errors import AnalysisUnparsableError

from .models import CandidateIssue, EnrichmentContext, ProposedIssue

BODY_PREVIEW_CHARS = 500

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class SimilarityReply(BaseModel):
    """What the judge is asked to return."""
    similarity_score: float
    reasoning: str = ""
    relationship_type: Optional[str] = None
    confidence: Optional[float] = Field(default=None)

    @field_validator("similarity_score", "confidence")
    @classmethod
    def clamp_unit_interval(cls, value):
        if value is None:
            return value
        return min(1.0, max(0.0, float(value)))


def build_similarity_prompt(
    issue: ProposedIssue,
    context: EnrichmentContext,
    candidate: CandidateIssue,
) -> str:
    """Build the prompt asking the judge to compare two issues."""
    labels = ", ".join(candidate.labels) or "None"
    return f"""Analyze the semantic similarity between these two GitHub issues and provide a similarity score from 0-1:

NEW ISSUE:
Title: {issue.title}
Description: {issue.body[:BODY_PREVIEW_CHARS]}
Error Messages: {context.error_messages or 'None'}
App ID: {context.app_id or 'Not specified'}

EXISTING ISSUE:
Title: {candidate.title}
Description: {candidate.body[:BODY_PREVIEW_CHARS]}
Labels: {labels}

Consider these aspects:
1. **Root Cause Similarity**: Do they have the same underlying technical problem?
   - "Internal Server Error" vs "500 Error" vs "Backend Failure" (HIGH similarity)
   - "Authentication Failed" vs "Login Broken" vs "Can't Sign In" (HIGH similarity)
   - "Widget not loading" vs "Messenger not showing" vs "Chat not displaying" (HIGH similarity)

2. **Symptom Similarity**: Do users experience similar issues?
   - Same functionality affected, same user impact
   - Similar error patterns or behaviors

3. **Context Match**:
   - Same App ID (if specified) = high relevance
   - Similar technical components (API, authentication, UI widgets)

4. **Different Wordings, Same Problem**:
   - Technical vs non-technical descriptions of the same issue
   - Different error messages for the same root cause

Respond with ONLY a JSON object:
{{
  "similarity_score": 0.0-1.0,
  "reasoning": "Brief explanation of why they are/aren't similar",
  "relationship_type": "duplicate|related|different",
  "confidence": 0.0-1.0
}}"""


def extract_json_object(text: str) -> dict:
    """
    Pull the first JSON object out of a model reply.

    Tolerates markdown code fences and prose around the object.

    Raises:
        ValueError: If no JSON object can be decoded
    """
    if not text or not text.strip():
        raise ValueError("empty response")

    fenced = CODE_FENCE_PATTERN.search(text)
    if fenced:
        text = fenced.group(1)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("no JSON object in response")

    data = json.loads(text[start:end + 1])
    if not isinstance(data, dict):
        raise ValueError("response JSON is not an object")
    return data


def parse_similarity_response(response: str) -> SimilarityReply:
    """
    Parse the judge's reply.

    Raises:
        AnalysisUnparsableError: If the reply has no usable score
    """
    try:
        return SimilarityReply.model_validate(extract_json_object(response))
    except (ValueError, ValidationError) as e:
        raise AnalysisUnparsableError(
            f"Could not parse similarity response: {e}",
            raw_response=response[:500] if response else "",
        ) from e
