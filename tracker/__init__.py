"""
Issue tracker access for triage.

Searches existing GitHub issues, files new ones and renders the bug-report
template.

Usage:
    from tracker import IssueSearchClient, IssueCreator

    async with IssueSearchClient(token) as search:
        issues = await search.search("widget not loading", ["acme/messenger"])
"""

from .src.issues import CreatedIssue, IssueCreator, RepositoryInfo
from .src.search import AccessCheck, IssueSearchClient, build_search_expression
from .src.template import (
    IssueTemplateFields,
    build_enrichment,
    build_proposed_issue,
    issue_labels,
    render_issue_markdown,
    template_from_conversation,
)

__all__ = [
    "CreatedIssue",
    "IssueCreator",
    "RepositoryInfo",
    "AccessCheck",
    "IssueSearchClient",
    "build_search_expression",
    "IssueTemplateFields",
    "build_enrichment",
    "build_proposed_issue",
    "issue_labels",
    "render_issue_markdown",
    "template_from_conversation",
]
