"""Configuration module for the Jira Slack bot."""
from jirabot.config.settings import ResponseFormat, Settings, get_settings

__all__ = ["ResponseFormat", "Settings", "get_settings"]
