"""Tests for issue creation."""

import pytest

from shared.errors import (
    InputValidationError,
    NotFoundError,
    RateLimitedError,
    RemoteAuthError,
    TrackerError,
)
from tracker.src.issues import IssueCreator
from tracker.tests.conftest import issue_json, make_response, mock_request


class TestCreateIssue:
    """Tests for IssueCreator.create_issue."""

    @pytest.mark.asyncio
    async def test_success(self, mock_http_session):
        mock_request(mock_http_session, make_response(status=201, json_data=issue_json(
            77, number=12, title="Messenger not loading",
            labels=[{"name": "intercom"}, {"name": "bug"}],
        )))
        creator = IssueCreator("token", session=mock_http_session)

        created = await creator.create_issue(
            "acme/messenger", "Messenger not loading", "Body", ["intercom", "bug"],
        )

        assert created.number == 12
        assert created.html_url == "https://github.com/acme/messenger/issues/12"
        assert created.labels == ["intercom", "bug"]

        call = mock_http_session.request.call_args
        assert call.args == ("POST", "https://api.github.com/repos/acme/messenger/issues")
        assert call.kwargs["json"] == {
            "title": "Messenger not loading",
            "body": "Body",
            "labels": ["intercom", "bug"],
            "assignees": [],
        }

    @pytest.mark.asyncio
    async def test_milestone_sent_when_given(self, mock_http_session):
        mock_request(mock_http_session, make_response(status=201, json_data=issue_json(1)))
        creator = IssueCreator("token", session=mock_http_session)

        await creator.create_issue("acme/messenger", "t", "b", milestone=3)

        assert mock_http_session.request.call_args.kwargs["json"]["milestone"] == 3

    @pytest.mark.asyncio
    async def test_malformed_repository_rejected_before_request(self, mock_http_session):
        mock_request(mock_http_session)
        creator = IssueCreator("token", session=mock_http_session)

        with pytest.raises(InputValidationError):
            await creator.create_issue("acme", "t", "b")
        mock_http_session.request.assert_not_called()

    @pytest.mark.parametrize("status,headers,error", [
        (401, {}, RemoteAuthError),
        (403, {"X-RateLimit-Remaining": "0"}, RateLimitedError),
        (403, {"X-RateLimit-Remaining": "4000"}, RemoteAuthError),
        (403, {"Retry-After": "30"}, RateLimitedError),
        (429, {}, RateLimitedError),
        (404, {}, NotFoundError),
        (422, {}, InputValidationError),
        (500, {}, TrackerError),
    ])
    @pytest.mark.asyncio
    async def test_status_mapping(self, mock_http_session, status, headers, error):
        mock_request(mock_http_session, make_response(status=status, text="nope", headers=headers))
        creator = IssueCreator("token", session=mock_http_session)

        with pytest.raises(error):
            await creator.create_issue("acme/messenger", "t", "b")

    @pytest.mark.asyncio
    async def test_403_permission_hint(self, mock_http_session):
        mock_request(mock_http_session, make_response(status=403, text="Forbidden"))
        creator = IssueCreator("token", session=mock_http_session)

        with pytest.raises(RemoteAuthError) as exc_info:
            await creator.create_issue("acme/messenger", "t", "b")
        assert "write access" in exc_info.value.hint


class TestRepositoryInfo:

    @pytest.mark.asyncio
    async def test_get_repository_info(self, mock_http_session):
        mock_request(mock_http_session, make_response(json_data={
            "name": "messenger",
            "full_name": "acme/messenger",
            "html_url": "https://github.com/acme/messenger",
            "description": None,
        }))
        creator = IssueCreator("token", session=mock_http_session)

        info = await creator.get_repository_info("acme/messenger")

        assert info.full_name == "acme/messenger"
        assert info.description == ""

    @pytest.mark.asyncio
    async def test_missing_repository(self, mock_http_session):
        mock_request(mock_http_session, make_response(status=404, text="Not Found"))
        creator = IssueCreator("token", session=mock_http_session)

        with pytest.raises(NotFoundError):
            await creator.get_repository_info("acme/gone")
