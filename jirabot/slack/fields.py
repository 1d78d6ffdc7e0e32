"""Field formatter registry for issue attachments.

Each named field maps to a function that derives a displayable value from a
JiraIssue, or returns None when the field does not apply to that issue.
Names outside the built-in set are resolved through the operator's
custom-field map (display name -> Jira field key).
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from jirabot.config.settings import Settings
from jirabot.jira.types import JiraIssue

logger = logging.getLogger(__name__)

UNASSIGNED = "Unassigned"
NO_SPRINT = "Not Assigned"

_SPRINT_NAME = re.compile(r",name=([^,]+),")

_JIRA_DATETIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d",
)


@dataclass(frozen=True)
class FieldEntry:
    """One row of the attachment field table."""

    title: str
    value: str
    short: bool

    def to_slack(self) -> dict[str, Any]:
        return {"title": self.title, "value": self.value, "short": self.short}


# (value, short) or None when the field is inapplicable
FieldFormatter = Callable[[JiraIssue], Optional[tuple[str, bool]]]


def display_value(value: Any) -> str:
    """Render a raw Jira field value as text.

    Option/user/status objects show their value, name or display name;
    lists are comma-joined.
    """
    if value is None:
        return ""
    if isinstance(value, dict):
        for attr in ("value", "name", "displayName"):
            if value.get(attr) is not None:
                return str(value[attr])
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(filter(None, (display_value(item) for item in value)))
    return str(value)


def parse_jira_datetime(value: str) -> Optional[datetime]:
    """Parse a Jira timestamp (e.g. 2026-01-15T10:30:00.000+0000)."""
    for fmt in _JIRA_DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def format_calendar(value: str, now: Optional[datetime] = None) -> str:
    """Format a timestamp relative to now, calendar style.

    Returns e.g. "Today at 2:30 PM", "Yesterday at 9:05 AM",
    "Last Monday at 4:00 PM", "Friday at 10:00 AM", or "01/15/2026" when
    further than a week away. Unparseable input is returned unchanged.
    """
    parsed = parse_jira_datetime(value)
    if parsed is None:
        return value

    if now is None:
        now = datetime.now(timezone.utc).astimezone()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = parsed.astimezone(now.tzinfo)

    days = (local.date() - now.date()).days
    at = local.strftime("%I:%M %p").lstrip("0")
    weekday = local.strftime("%A")

    if days == 0:
        return f"Today at {at}"
    if days == -1:
        return f"Yesterday at {at}"
    if days == 1:
        return f"Tomorrow at {at}"
    if -7 < days < -1:
        return f"Last {weekday} at {at}"
    if 1 < days < 7:
        return f"{weekday} at {at}"
    return local.strftime("%m/%d/%Y")


def parse_sprint(sprint_values: Any) -> str:
    """Parse the sprint name out of the Greenhopper sprint field.

    If the issue is in more than one sprint, the last one wins.

    Returns:
        The sprint name, or '' if none can be found.
    """
    if not sprint_values:
        return ""
    if isinstance(sprint_values, (list, tuple)):
        sprint = sprint_values[-1]
    else:
        sprint = sprint_values

    # Newer Jira versions return sprint objects instead of encoded strings
    if isinstance(sprint, dict):
        return str(sprint.get("name") or "")

    match = _SPRINT_NAME.search(str(sprint))
    return match.group(1) if match else ""


class FieldFormatterRegistry:
    """Resolves profile field names to attachment field entries."""

    def __init__(
        self,
        usermap: Optional[Mapping[str, str]] = None,
        sprint_field: str = "",
        custom_fields: Optional[Mapping[str, str]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._usermap = dict(usermap or {})
        self._sprint_field = sprint_field
        self._custom_fields = dict(custom_fields or {})
        self._now = now
        self._formatters: dict[str, FieldFormatter] = {
            "Created": self._created,
            "Updated": self._updated,
            "Status": self._status,
            "Priority": self._priority,
            "Reporter": self._reporter,
            "Assignee": self._assignee,
            "Sprint": self._sprint,
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "FieldFormatterRegistry":
        return cls(
            usermap=settings.usermap,
            sprint_field=settings.jira_sprint_field,
            custom_fields=settings.jira_custom_fields,
        )

    @property
    def builtin_names(self) -> tuple[str, ...]:
        return tuple(self._formatters)

    def resolve(self, name: str, issue: JiraIssue) -> Optional[FieldEntry]:
        """Build the entry for one field, or None if it should be omitted."""
        formatter = self._formatters.get(name)
        if formatter is not None:
            result = formatter(issue)
            if result is None:
                return None
            value, short = result
            return FieldEntry(title=name, value=value, short=short)

        field_key = self._custom_fields.get(name)
        if field_key is None:
            logger.warning(f"No formatter or custom field mapping for {name!r}, skipping")
            return None

        value = display_value(issue.field(field_key))
        if not value:
            return None
        return FieldEntry(title=name, value=value, short=False)

    # ----- Users -----
    def jira_to_slack_user(self, user: Mapping[str, Any]) -> str:
        """Look up a Jira user's Slack username.

        Returns:
            '@slackname' if mapped, '' otherwise.
        """
        for attr in ("name", "accountId", "emailAddress"):
            username = user.get(attr)
            if username and self._usermap.get(username):
                return f"@{self._usermap[username]}"
        return ""

    def _user_value(self, user: Mapping[str, Any]) -> str:
        return self.jira_to_slack_user(user) or str(user.get("displayName") or user.get("name") or "")

    # ----- Built-in formatters -----
    def _calendar(self, value: Any) -> str:
        return format_calendar(str(value), self._now() if self._now else None)

    def _created(self, issue: JiraIssue) -> Optional[tuple[str, bool]]:
        created = issue.field("created")
        return (self._calendar(created), True) if created else None

    def _updated(self, issue: JiraIssue) -> Optional[tuple[str, bool]]:
        updated = issue.field("updated")
        return (self._calendar(updated), True) if updated else None

    def _status(self, issue: JiraIssue) -> Optional[tuple[str, bool]]:
        status = display_value(issue.field("status"))
        return (status, True) if status else None

    def _priority(self, issue: JiraIssue) -> Optional[tuple[str, bool]]:
        priority = display_value(issue.field("priority"))
        return (priority, True) if priority else None

    def _reporter(self, issue: JiraIssue) -> Optional[tuple[str, bool]]:
        reporter = issue.field("reporter")
        if not isinstance(reporter, dict):
            return None
        return self._user_value(reporter), True

    def _assignee(self, issue: JiraIssue) -> Optional[tuple[str, bool]]:
        assignee = issue.field("assignee")
        if not isinstance(assignee, dict):
            return UNASSIGNED, True
        return self._user_value(assignee) or UNASSIGNED, True

    def _sprint(self, issue: JiraIssue) -> Optional[tuple[str, bool]]:
        if not self._sprint_field:
            return None
        return parse_sprint(issue.field(self._sprint_field)) or NO_SPRINT, False
