"""
Issue search client.

Runs GitHub issue searches scoped to the configured repositories, and
checks that a token is allowed to use the search endpoint at all (some
valid tokens can read repositories but are refused by search).
"""

import re
from dataclasses import dataclass
from typing import Optional

from shared.deduplication.models import CandidateIssue
from shared.errors import (
    NotFoundError,
    RemoteAuthError,
    RequestTimeoutError,
    SearchQueryError,
    TrackerError,
)
from shared.logging import get_logger

from .api import TOKEN_HINT, GitHubAPI, is_rate_limited

log = get_logger("tracker", "search")

PER_PAGE = 20
SORT = "updated"

# States for which no state: term is sent (the endpoint rejects state:all)
ANY_STATE = {None, "", "all", "both"}


@dataclass
class AccessCheck:
    """Result of validating a tracker token."""
    valid: bool
    user: Optional[str] = None
    can_search: bool = False


def build_search_expression(
    query: str,
    repositories: list[str],
    state: Optional[str] = "all",
    labels: Optional[list[str]] = None,
) -> str:
    """Combine the query with repository, state and label terms."""
    terms = [query]
    terms.extend(f"repo:{repo}" for repo in repositories)
    if state not in ANY_STATE:
        terms.append(f"state:{state}")
    terms.extend(f'label:"{label}"' for label in labels or [])
    terms.append("is:issue")
    return re.sub(r"\s+", " ", " ".join(terms)).strip()


class IssueSearchClient(GitHubAPI):
    """
    Client for the GitHub issue search endpoint.

    Usage:
        client = IssueSearchClient(token)
        issues = await client.search("widget not loading", ["acme/messenger"])
    """

    async def search(
        self,
        query: str,
        repositories: list[str],
        state: Optional[str] = "all",
        labels: Optional[list[str]] = None,
    ) -> list[CandidateIssue]:
        """
        Search issues.

        Args:
            query: Free-text query
            repositories: Repository scopes (owner/name)
            state: "open", "closed", or "all"/"both"/None for either
            labels: Labels every result must carry

        Returns:
            Up to 20 candidates, most recently updated first

        Raises:
            RateLimitedError: On 429, or a 403 with the quota spent
            SearchQueryError: On 422 (invalid query syntax)
            RemoteAuthError: On 401, or any other 403
            TrackerError: On any other non-2xx status
            RequestTimeoutError: On timeout or connection failure
        """
        expression = build_search_expression(query, repositories, state, labels)

        status, body, headers = await self._request(
            "GET",
            "/search/issues",
            params={"q": expression, "per_page": str(PER_PAGE), "sort": SORT},
        )

        if is_rate_limited(status, headers):
            log.warning("tracker.search.rate_limited", query=query, status=status)
            raise self._rate_limited(headers)
        if status == 422:
            raise SearchQueryError(f"GitHub search query invalid: {str(body)[:300]}")
        if status == 401:
            raise self._auth_error()
        if status == 403:
            raise RemoteAuthError(
                "GitHub token is not allowed to search issues",
                hint=TOKEN_HINT + " The token needs read access to the repositories.",
            )
        if status >= 300:
            raise TrackerError(f"GitHub API error: {status}", status_code=status)

        items = body.get("items") or []
        issues = [CandidateIssue.from_api(item) for item in items]

        log.info(
            "tracker.search.complete",
            query=query,
            expression=expression,
            total_count=body.get("total_count", len(items)),
            result_count=len(issues),
            incomplete=body.get("incomplete_results", False),
        )
        return issues

    async def get_issue(self, repository: str, number: int) -> CandidateIssue:
        """
        Fetch one issue by number.

        Raises:
            NotFoundError: If the issue or repository does not exist
        """
        status, body, headers = await self._request("GET", f"/repos/{repository}/issues/{number}")
        if status == 404:
            raise NotFoundError(f"Issue {repository}#{number} not found")
        if status == 401:
            raise self._auth_error()
        if status in (403, 429):
            raise self._rate_limited(headers)
        if status >= 300:
            raise TrackerError(f"GitHub API error: {status}", status_code=status)
        return CandidateIssue.from_api(body)

    async def list_issues(self, repository: str, state: str = "all") -> list[CandidateIssue]:
        """List the most recently updated issues of one repository directly."""
        status, body, headers = await self._request(
            "GET",
            f"/repos/{repository}/issues",
            params={"state": state, "per_page": str(PER_PAGE), "sort": SORT},
        )
        if status == 404:
            raise NotFoundError(f"Repository {repository} not found")
        if status == 401:
            raise self._auth_error()
        if status in (403, 429):
            raise self._rate_limited(headers)
        if status >= 300:
            raise TrackerError(f"GitHub API error: {status}", status_code=status)

        # The issues endpoint also returns pull requests
        issues = [
            CandidateIssue.from_api(item) for item in body
            if "pull_request" not in item
        ]
        log.info("tracker.issues.listed", repository=repository, state=state, count=len(issues))
        return issues

    async def validate_access(self) -> AccessCheck:
        """
        Check the token is valid and allowed to search.

        A 422 from the test search still counts as search access: the query
        was looked at, so authorization passed.
        """
        status, body, _ = await self._request("GET", "/user")
        if status != 200:
            log.warning("tracker.access.invalid", status=status)
            return AccessCheck(valid=False)

        user = body.get("login") if isinstance(body, dict) else None

        try:
            search_status, _, _ = await self._request(
                "GET",
                "/search/issues",
                params={"q": "test", "per_page": "1"},
            )
        except RequestTimeoutError as e:
            log.warning("tracker.access.search_check_failed", user=user, error=str(e))
            return AccessCheck(valid=True, user=user, can_search=False)
        can_search = search_status in (200, 422)

        log.info("tracker.access.checked", user=user, can_search=can_search, search_status=search_status)
        return AccessCheck(valid=True, user=user, can_search=can_search)
