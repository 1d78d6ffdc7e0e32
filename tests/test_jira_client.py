"""Tests for the Jira client."""
import asyncio
from typing import Any, Optional
from unittest.mock import AsyncMock

import aiohttp
import pytest

from jirabot.jira import client as client_module
from jirabot.jira.client import JiraAPIError, JiraService


@pytest.fixture
def service(settings_factory):
    return JiraService(settings_factory(jira_base="jira", jira_user="bot", jira_api_token="secret"))


class TestJiraService:
    """Tests for JiraService.find_issue."""

    def test_urls(self, service):
        assert service.base_url == "https://jira.example.com:443/jira"
        assert service.api_root == "/rest/api/latest"

    def test_no_auth_without_user(self, settings):
        assert JiraService(settings).auth is None

    @pytest.mark.asyncio
    async def test_find_issue(self, service, monkeypatch):
        request = AsyncMock(
            return_value={"key": "PROJ-1", "fields": {"summary": "Fix it", "status": {"name": "Open"}}}
        )
        monkeypatch.setattr(service, "_request", request)

        issue = await service.find_issue("PROJ-1")

        request.assert_awaited_once_with("GET", "/issue/PROJ-1")
        assert issue.key == "PROJ-1"
        assert issue.summary == "Fix it"
        assert issue.field("status") == {"name": "Open"}

    @pytest.mark.asyncio
    async def test_malformed_response(self, service, monkeypatch):
        monkeypatch.setattr(service, "_request", AsyncMock(return_value={"key": "PROJ-1"}))
        with pytest.raises(JiraAPIError):
            await service.find_issue("PROJ-1")

    @pytest.mark.asyncio
    async def test_errors_propagate(self, service, monkeypatch):
        monkeypatch.setattr(
            service,
            "_request",
            AsyncMock(side_effect=JiraAPIError(404, "Issue does not exist")),
        )
        with pytest.raises(JiraAPIError) as exc_info:
            await service.find_issue("NOPE-1")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_close_without_session(self, service):
        await service.close()


class TestJiraAPIError:
    def test_message(self):
        error = JiraAPIError(500, "Server error", {"errorMessages": []})
        assert str(error) == "Jira API error 500: Server error"
        assert error.response_body == {"errorMessages": []}


# =============================================================================
# Retry loop
# =============================================================================


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    def __init__(self, status: int, body: Any = None, headers: Optional[dict] = None, reason: str = ""):
        self.status = status
        self.reason = reason
        self.headers = headers or {}
        self._body = body if body is not None else {}

    async def json(self, content_type=None):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    closed = False

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.calls: list[tuple[str, str]] = []

    def request(self, method, url, params=None):
        self.calls.append((method, url))
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True


ISSUE_BODY = {"key": "PROJ-1", "fields": {"summary": "Fix it"}}


@pytest.fixture
def sleep(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr(client_module.asyncio, "sleep", sleep)
    return sleep


def make_service(settings_factory, session: FakeSession, max_retries: int = 2) -> JiraService:
    service = JiraService(settings_factory(jira_max_retries=max_retries))
    service._session = session
    return service


class TestRequestRetries:
    """Tests for the retry and backoff behaviour of _request."""

    @pytest.mark.asyncio
    async def test_server_error_then_success(self, settings_factory, sleep):
        session = FakeSession(FakeResponse(503, reason="Service Unavailable"), FakeResponse(200, ISSUE_BODY))
        service = make_service(settings_factory, session, max_retries=1)

        issue = await service.find_issue("PROJ-1")

        assert issue.summary == "Fix it"
        assert len(session.calls) == 2
        assert session.calls[0] == ("GET", "https://jira.example.com:443/rest/api/latest/issue/PROJ-1")
        sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, settings_factory, sleep):
        session = FakeSession(FakeResponse(404, {"errorMessages": ["Issue does not exist"]}, reason="Not Found"))
        service = make_service(settings_factory, session)

        with pytest.raises(JiraAPIError) as exc_info:
            await service.find_issue("NOPE-1")

        assert exc_info.value.status_code == 404
        assert "Issue does not exist" in exc_info.value.message
        assert len(session.calls) == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self, settings_factory, sleep):
        session = FakeSession(
            FakeResponse(429, headers={"Retry-After": "7"}, reason="Too Many Requests"),
            FakeResponse(200, ISSUE_BODY),
        )
        service = make_service(settings_factory, session)

        issue = await service.find_issue("PROJ-1")

        assert issue.key == "PROJ-1"
        sleep.assert_awaited_once_with(7)

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, settings_factory, sleep):
        session = FakeSession(FakeResponse(429), FakeResponse(429))
        service = make_service(settings_factory, session, max_retries=1)

        with pytest.raises(JiraAPIError) as exc_info:
            await service.find_issue("PROJ-1")

        assert exc_info.value.status_code == 429
        # No Retry-After: 5s base backoff
        sleep.assert_awaited_once_with(5)

    @pytest.mark.asyncio
    async def test_server_errors_exhausted(self, settings_factory, sleep):
        session = FakeSession(FakeResponse(500), FakeResponse(502), FakeResponse(503, reason="Unavailable"))
        service = make_service(settings_factory, session, max_retries=2)

        with pytest.raises(JiraAPIError) as exc_info:
            await service.find_issue("PROJ-1")

        assert exc_info.value.status_code == 503
        assert len(session.calls) == 3
        assert [call.args[0] for call in sleep.await_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_timeouts_exhausted(self, settings_factory, sleep):
        session = FakeSession(asyncio.TimeoutError(), asyncio.TimeoutError())
        service = make_service(settings_factory, session, max_retries=1)

        with pytest.raises(JiraAPIError) as exc_info:
            await service.find_issue("PROJ-1")

        assert exc_info.value.status_code == 0
        assert "after 2 attempts" in exc_info.value.message
        assert len(session.calls) == 2

    @pytest.mark.asyncio
    async def test_connection_error_then_success(self, settings_factory, sleep):
        session = FakeSession(aiohttp.ClientConnectionError("reset"), FakeResponse(200, ISSUE_BODY))
        service = make_service(settings_factory, session, max_retries=1)

        issue = await service.find_issue("PROJ-1")

        assert issue.key == "PROJ-1"
        sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_no_retries_configured(self, settings_factory, sleep):
        session = FakeSession(FakeResponse(500))
        service = make_service(settings_factory, session, max_retries=0)

        with pytest.raises(JiraAPIError) as exc_info:
            await service.find_issue("PROJ-1")

        assert exc_info.value.status_code == 500
        sleep.assert_not_awaited()
