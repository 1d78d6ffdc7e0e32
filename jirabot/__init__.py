"""Slack bot that answers Jira issue keys with issue summaries."""

__version__ = "1.0.0"
