"""Jira REST integration module."""

from jirabot.jira.client import JiraAPIError, JiraService
from jirabot.jira.types import JiraIssue

__all__ = [
    "JiraAPIError",
    "JiraIssue",
    "JiraService",
]
