"""
Data models for duplicate-issue analysis.

Contains:
- RelationshipType / SuggestedAction enums
- ProposedIssue and EnrichmentContext (the new report)
- CandidateIssue (an existing tracker issue)
- SimilarityJudgment, ScoredCandidate, AnalysisResult
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class RelationshipType(Enum):
    """How a candidate relates to the new report."""
    DUPLICATE = "duplicate"
    RELATED = "related"
    DEPENDENCY = "dependency"
    FOLLOW_UP = "follow-up"


class SuggestedAction(Enum):
    """Recommended next step for a candidate. Never executed automatically."""
    REFERENCE = "reference"
    MERGE = "merge"
    UPDATE_EXISTING = "update_existing"
    CREATE_NEW = "create_new"


class AnalysisState(Enum):
    """Steps of one duplicate-analysis run."""
    IDLE = "idle"
    QUERY_GENERATION = "query_generation"
    SEARCHING = "searching"
    DEDUPLICATING = "deduplicating"
    SCORING = "scoring"
    RANKED = "ranked"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProposedIssue:
    """
    The issue about to be filed.

    Immutable once handed to an analysis run.
    """
    title: str
    body: str
    labels: tuple[str, ...] = ()
    priority: str = "medium"

    def __post_init__(self):
        # Accept any iterable of labels
        if not isinstance(self.labels, tuple):
            object.__setattr__(self, "labels", tuple(self.labels))


@dataclass(frozen=True)
class EnrichmentContext:
    """Operator-supplied details that are not in the conversation."""
    screenshots: tuple[str, ...] = ()
    additional_steps: str = ""
    technical_details: str = ""
    error_messages: str = ""
    browser_info: str = ""
    app_id: str = ""
    customer_impact: str = "medium"

    def __post_init__(self):
        if not isinstance(self.screenshots, tuple):
            object.__setattr__(self, "screenshots", tuple(self.screenshots))


def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class CandidateIssue:
    """An existing tracker issue. Read-only."""
    id: int
    number: int
    title: str
    body: str = ""
    state: str = "open"
    labels: tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    html_url: str = ""
    author: str = ""
    assignees: tuple[str, ...] = ()
    repository: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "CandidateIssue":
        """Build from a GitHub issue JSON object."""
        repository = ""
        repo_url = data.get("repository_url") or ""
        if "/repos/" in repo_url:
            repository = repo_url.split("/repos/", 1)[1]

        return cls(
            id=int(data["id"]),
            number=int(data.get("number", 0)),
            title=data.get("title") or "",
            body=data.get("body") or "",
            state=data.get("state") or "open",
            labels=tuple(
                label["name"] if isinstance(label, dict) else str(label)
                for label in data.get("labels") or []
            ),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
            html_url=data.get("html_url") or "",
            author=(data.get("user") or {}).get("login", ""),
            assignees=tuple(
                a.get("login", "") for a in data.get("assignees") or []
            ),
            repository=repository,
        )


@dataclass
class SimilarityJudgment:
    """Output of one similarity scoring call."""
    score: float
    reasoning: str
    engine: str  # "ai" or "lexical"
    confidence: Optional[float] = None


@dataclass
class ScoredCandidate:
    """A candidate with its score and classification."""
    issue: CandidateIssue
    similarity_score: float
    relationship_type: RelationshipType
    reasoning: str
    suggested_action: SuggestedAction
    scoring_engine: str = "lexical"


@dataclass
class AnalysisResult:
    """Result of a duplicate-analysis run."""
    analyzed_issues: list[ScoredCandidate] = field(default_factory=list)
    total_searched: int = 0  # Unique candidates examined
    search_time_ms: float = 0.0
    ai_model_used: str = ""
    queries: list[str] = field(default_factory=list)
    failed_queries: list[str] = field(default_factory=list)

    @property
    def duplicates(self) -> list[ScoredCandidate]:
        return [
            c for c in self.analyzed_issues
            if c.relationship_type == RelationshipType.DUPLICATE
        ]

    @property
    def has_duplicates(self) -> bool:
        return bool(self.duplicates)
