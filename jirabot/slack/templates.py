"""Closed template language for operator-authored titles and pretexts.

Templates are literal text with ${path} substitutions, where path is a dotted
lookup rooted at `issue`, e.g. "${issue.key}: ${issue.fields.summary}".
`$$` renders a literal `$`. Lookups only walk dict keys and list indices;
nothing is evaluated.
"""

from typing import Any

from jirabot.jira.types import JiraIssue
from jirabot.slack.fields import display_value

ROOT = "issue"


class TemplateError(ValueError):
    """Raised for malformed templates or unresolvable paths."""


def _resolve(path: str, issue: JiraIssue) -> Any:
    parts = path.split(".")
    if not path or any(not part for part in parts):
        raise TemplateError(f"Empty path segment in ${{{path}}}")
    if parts[0] != ROOT:
        raise TemplateError(f"Unknown template root {parts[0]!r} in ${{{path}}}")

    value: Any = {"key": issue.key, "fields": issue.fields}
    for part in parts[1:]:
        if isinstance(value, dict):
            value = value.get(part)
        elif isinstance(value, list) and part.lstrip("-").isdigit():
            index = int(part)
            value = value[index] if -len(value) <= index < len(value) else None
        else:
            value = None
        if value is None:
            return None
    return value


def render_template(template: str, issue: JiraIssue) -> str:
    """Render a template against an issue.

    Raises:
        TemplateError: On unterminated or invalid substitutions.
    """
    out: list[str] = []
    i = 0
    length = len(template)
    while i < length:
        char = template[i]
        if char != "$":
            out.append(char)
            i += 1
            continue

        nxt = template[i + 1] if i + 1 < length else ""
        if nxt == "$":
            out.append("$")
            i += 2
        elif nxt == "{":
            end = template.find("}", i + 2)
            if end == -1:
                raise TemplateError(f"Unterminated substitution at offset {i}")
            path = template[i + 2:end].strip()
            out.append(display_value(_resolve(path, issue)))
            i = end + 1
        else:
            out.append("$")
            i += 1
    return "".join(out)
