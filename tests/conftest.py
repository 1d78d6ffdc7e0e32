"""
Pytest configuration and fixtures.

Jira and Slack are replaced by mocks; no credentials or network needed.
"""

from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from jirabot.config.settings import Settings
from jirabot.jira.types import JiraIssue


# =============================================================================
# Settings
# =============================================================================


def make_settings(**overrides: Any) -> Settings:
    """Build Settings from explicit values only (no .env lookup)."""
    values: dict[str, Any] = {
        "jira_protocol": "https",
        "jira_host": "jira.example.com",
        "jira_port": 443,
        "jira_base": "",
        "jira_regex": r"([A-Z][A-Z0-9]+-[0-9]+)",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    """Default settings with the stock micro/minimal/full profiles."""
    return make_settings()


# =============================================================================
# Issues
# =============================================================================


def make_issue(key: str = "PROJ-123", **fields: Any) -> JiraIssue:
    """Build a JiraIssue with sensible default fields."""
    base: dict[str, Any] = {
        "summary": "Fix the login page",
        "description": "Users *cannot* log in.",
        "created": "2026-10-18T09:15:00.000+0000",
        "updated": "2026-10-17T16:45:00.000+0000",
        "status": {"name": "In Progress"},
        "priority": {"name": "High"},
        "reporter": {"name": "jdoe", "displayName": "Jane Doe"},
        "assignee": {"name": "rroe", "displayName": "Richard Roe"},
    }
    base.update(fields)
    return JiraIssue(key=key, fields=base)


@pytest.fixture
def issue() -> JiraIssue:
    """A typical issue."""
    return make_issue()


@pytest.fixture
def fixed_now() -> datetime:
    """Reference 'now' for calendar formatting."""
    return datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def mock_find_issue() -> AsyncMock:
    """Jira lookup returning an issue with the requested key."""

    async def _find(key: str) -> JiraIssue:
        return make_issue(key)

    return AsyncMock(side_effect=_find)


@pytest.fixture
def mock_sender() -> AsyncMock:
    """Reply sender that records calls."""
    sender = AsyncMock()
    sender.send_reply = AsyncMock(return_value=None)
    return sender


@pytest.fixture
def settings_factory():
    """Factory for Settings with overrides."""
    return make_settings


@pytest.fixture
def issue_factory():
    """Factory for JiraIssue with field overrides."""
    return make_issue
