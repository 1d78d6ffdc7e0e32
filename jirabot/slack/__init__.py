"""Slack integration module."""

from jirabot.slack.bot import JiraBot
from jirabot.slack.dispatcher import InboundMessage, MessageDispatcher, MessageKind
from jirabot.slack.formatter import Attachment, IssueResponseComposer

__all__ = [
    "Attachment",
    "InboundMessage",
    "IssueResponseComposer",
    "JiraBot",
    "MessageDispatcher",
    "MessageKind",
]
