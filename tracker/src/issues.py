"""
Issue creation client.

Files new issues and looks up repository metadata. A 403 is a rate limit
when GitHub says the quota is exhausted or asks us to back off, and a
permission problem otherwise.
"""

from dataclasses import dataclass, field
from typing import Optional

from shared.config import validate_repository
from shared.errors import (
    InputValidationError,
    NotFoundError,
    RemoteAuthError,
    TrackerError,
)
from shared.logging import get_logger

from .api import TOKEN_HINT, GitHubAPI, is_rate_limited

log = get_logger("tracker", "issues")


@dataclass
class CreatedIssue:
    """An issue that was just filed."""
    id: int
    number: int
    title: str
    html_url: str
    state: str = "open"
    labels: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "CreatedIssue":
        return cls(
            id=int(data["id"]),
            number=int(data["number"]),
            title=data.get("title") or "",
            html_url=data.get("html_url") or "",
            state=data.get("state") or "open",
            labels=[
                label["name"] if isinstance(label, dict) else str(label)
                for label in data.get("labels") or []
            ],
        )


@dataclass
class RepositoryInfo:
    name: str
    full_name: str
    html_url: str
    description: str = ""


class IssueCreator(GitHubAPI):
    """
    Client for creating GitHub issues.

    Usage:
        creator = IssueCreator(token)
        created = await creator.create_issue("acme/messenger", title, body, ["bug"])
    """

    def _check_repository(self, repository: str) -> None:
        if not validate_repository(repository):
            raise InputValidationError(
                f"Repository '{repository}' must use the format owner/name"
            )

    def _raise_for_status(self, status: int, body, headers, repository: str) -> None:
        if status == 401:
            raise self._auth_error()
        if is_rate_limited(status, headers):
            raise self._rate_limited(headers)
        if status == 403:
            raise RemoteAuthError(
                f"GitHub token is not allowed to write to {repository}",
                hint=TOKEN_HINT + " The token needs issue write access.",
            )
        if status == 404:
            raise NotFoundError(
                f"Repository {repository} not found. Please check the owner and repository name."
            )
        if status == 422:
            raise InputValidationError(f"Invalid issue data: {str(body)[:300]}")
        if status >= 300:
            raise TrackerError(f"GitHub API error: {status}", status_code=status)

    async def create_issue(
        self,
        repository: str,
        title: str,
        body: str,
        labels: Optional[list[str]] = None,
        assignees: Optional[list[str]] = None,
        milestone: Optional[int] = None,
    ) -> CreatedIssue:
        """
        File a new issue.

        Raises:
            InputValidationError: Malformed repository, or GitHub rejected the data (422)
            RemoteAuthError: Bad token (401) or missing permission (403)
            RateLimitedError: Quota exhausted (403 with no remaining calls, or 429)
            NotFoundError: Repository does not exist (404)
        """
        self._check_repository(repository)

        payload = {
            "title": title,
            "body": body,
            "labels": list(labels or []),
            "assignees": list(assignees or []),
        }
        if milestone is not None:
            payload["milestone"] = milestone

        log.info("tracker.issue.creating", repository=repository, title=title[:80], labels=payload["labels"])

        status, data, headers = await self._request("POST", f"/repos/{repository}/issues", json=payload)
        self._raise_for_status(status, data, headers, repository)

        created = CreatedIssue.from_api(data)
        log.info("tracker.issue.created", repository=repository, number=created.number, url=created.html_url)
        return created

    async def get_repository_info(self, repository: str) -> RepositoryInfo:
        self._check_repository(repository)
        status, data, headers = await self._request("GET", f"/repos/{repository}")
        self._raise_for_status(status, data, headers, repository)
        return RepositoryInfo(
            name=data.get("name") or "",
            full_name=data.get("full_name") or repository,
            html_url=data.get("html_url") or "",
            description=data.get("description") or "",
        )
