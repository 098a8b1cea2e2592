"""Data models for the LLM library."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from shared.deduplication.models import ProposedIssue


class Backend(str, Enum):
    """Available LLM backends."""
    OPENAI = "openai"
    CLAUDE = "claude"
    LOCAL = "local"


DEFAULT_MODELS = {
    Backend.OPENAI: "gpt-4",
    Backend.CLAUDE: "claude-sonnet-4-20250514",
}


@dataclass
class LLMResponse:
    """Response from an LLM request."""
    success: bool
    text: Optional[str] = None
    error: Optional[str] = None  # "auth_required", "rate_limited", "timeout", "api_error", ...
    message: Optional[str] = None

    # Metadata
    backend: Optional[str] = None
    model: Optional[str] = None
    response_time_seconds: float = 0.0

    # Rate limiting
    retry_after_seconds: Optional[int] = None


@dataclass
class InitialAnalysis:
    """First-pass description of a suspected bug."""
    title: str = "Issue from conversation"
    description: str = "No description available"
    customer_impact: str = "Unknown impact"


@dataclass
class BugDetectionResult:
    """Whether a conversation describes a bug, and why."""
    is_bug: bool = False
    confidence: float = 0.5
    reasoning: str = "Analysis completed"
    bug_type: str = "question"  # bug | feature | question | resolved
    severity: str = "medium"  # low | medium | high
    key_indicators: list[str] = field(default_factory=list)
    agent_escalation: str = "Not indicated"
    initial_analysis: InitialAnalysis = field(default_factory=InitialAnalysis)


@dataclass
class IssueDraft:
    """An issue written by the model from a confirmed bug."""
    issue: ProposedIssue
    summary: str = "GitHub issue generated"
    confidence: float = 0.8


@dataclass
class LocalModelStatus:
    """Readiness of the local inference server."""
    server_reachable: bool
    model_available: bool
    models: list[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.server_reachable and self.model_available
