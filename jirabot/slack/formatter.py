"""
Attachment Formatter - builds the Slack attachment for an issue.

A ResponseFormat profile decides what goes in: description, pretext/title
templates, footer, field table and thread placement.
"""

from dataclasses import dataclass
from importlib import metadata
from typing import Any, Optional

import structlog

from jirabot.config.settings import ResponseFormat, Settings
from jirabot.jira.types import JiraIssue
from jirabot.slack.fields import FieldEntry, FieldFormatterRegistry
from jirabot.slack.markup import jira_to_slack
from jirabot.slack.templates import TemplateError, render_template

logger = structlog.get_logger()

DISTRIBUTION = "jirabot"
BOT_NAME = "Slack Jira"
HOMEPAGE = "https://github.com/shaunburdick/slack-jira"
NO_DESCRIPTION = "Ticket does not contain a description"


@dataclass(frozen=True)
class Attachment:
    """Ready-to-send issue attachment."""

    fallback: str
    title: str
    title_link: str
    pretext: Optional[str] = None
    text: Optional[str] = None
    fields: tuple[FieldEntry, ...] = ()
    footer: Optional[str] = None
    respond_in_thread: bool = False
    mrkdwn_in: tuple[str, ...] = ("text",)

    def to_slack(self) -> dict[str, Any]:
        """Render as a Slack legacy attachment dict."""
        payload: dict[str, Any] = {
            "fallback": self.fallback,
            "title": self.title,
            "title_link": self.title_link,
            "mrkdwn_in": list(self.mrkdwn_in),
            "fields": [entry.to_slack() for entry in self.fields],
        }
        if self.pretext is not None:
            payload["pretext"] = self.pretext
        if self.text is not None:
            payload["text"] = self.text
        if self.footer is not None:
            payload["footer"] = self.footer
        return payload


def build_footer() -> str:
    """Name, version and homepage of the running build."""
    try:
        meta = metadata.metadata(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        from jirabot import __version__

        return f"{BOT_NAME} {__version__} - {HOMEPAGE}"

    homepage = meta.get("Home-page") or HOMEPAGE
    for url in meta.get_all("Project-URL") or []:
        label, _, link = url.partition(",")
        if label.strip().lower() == "homepage":
            homepage = link.strip()
    return f"{BOT_NAME} {meta['Version']} - {homepage}"


class IssueResponseComposer:
    """Composes issue attachments from a profile. Holds no per-message state."""

    def __init__(
        self,
        settings: Settings,
        registry: Optional[FieldFormatterRegistry] = None,
        footer: Optional[str] = None,
    ) -> None:
        self._settings = settings
        self._registry = registry or FieldFormatterRegistry.from_settings(settings)
        self._footer = footer if footer is not None else build_footer()

    def build_issue_link(self, issue_key: str) -> str:
        """Construct the browse link for an issue."""
        return f"{self._settings.jira_base_url}/browse/{issue_key}"

    @staticmethod
    def format_description(description: Optional[str]) -> str:
        """Convert a raw Jira description to mrkdwn, with a placeholder if empty."""
        return jira_to_slack(description or NO_DESCRIPTION)

    def _render(self, template: str, issue: JiraIssue, part: str) -> Optional[str]:
        try:
            return render_template(template, issue)
        except TemplateError as e:
            logger.error(
                "template_render_failed",
                issue_key=issue.key,
                part=part,
                template=template,
                error=str(e),
            )
            return None

    def compose(self, issue: JiraIssue, profile: ResponseFormat) -> Attachment:
        """Build the attachment for one issue."""
        summary = issue.summary
        fallback = summary or f"No summary found for {issue.key}"

        text = self.format_description(issue.description) if profile.description else None

        pretext = self._render(profile.pretext, issue, "pretext") if profile.pretext else None

        title = None
        if profile.title:
            title = self._render(profile.title, issue, "title")
        if title is None:
            title = summary

        entries = []
        for name in profile.fields:
            entry = self._registry.resolve(name, issue)
            if entry is not None:
                entries.append(entry)

        return Attachment(
            fallback=fallback,
            title=title,
            title_link=self.build_issue_link(issue.key),
            pretext=pretext,
            text=text,
            fields=tuple(entries),
            footer=None if profile.hide_footer else self._footer,
            respond_in_thread=profile.respond_in_thread,
        )

    def compose_named(self, issue: JiraIssue, format_name: str) -> Attachment:
        """Build the attachment using a profile looked up by name."""
        return self.compose(issue, self._settings.response_formats[format_name])
