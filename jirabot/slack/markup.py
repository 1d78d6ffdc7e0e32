"""Jira wiki markup -> Slack mrkdwn conversion."""

import re

_CODE_BLOCK = re.compile(r"\{(code|noformat)(?::[^}]*)?\}(.*?)\{\1\}", re.DOTALL)
_QUOTE_BLOCK = re.compile(r"\{quote\}(.*?)\{quote\}", re.DOTALL)
_COLOR = re.compile(r"\{color(?::[^}]*)?\}")
_HEADING = re.compile(r"^h[1-6]\.\s*(.+?)\s*$", re.MULTILINE)
_MONOSPACE = re.compile(r"\{\{(.+?)\}\}")
_USER_LINK = re.compile(r"\[~([^\]]+)\]")
_NAMED_LINK = re.compile(r"\[([^|\]\n]+)\|([^\]\n]+)\]")
_BARE_LINK = re.compile(r"\[((?:https?|mailto):[^\]\s]+)\]")
_NUMBERED_ITEM = re.compile(r"^[ \t]*#+[ \t]+", re.MULTILINE)
_BULLET_ITEM = re.compile(r"^[ \t]*[*-]+[ \t]+", re.MULTILINE)
_STRIKE = re.compile(r"(?<![\w-])-(?=\S)([^\n-]+?)(?<=\S)-(?![\w-])")
_CITATION = re.compile(r"\?\?(.+?)\?\?")

_PLACEHOLDER = "\x00{}\x00"
_PLACEHOLDER_RE = re.compile(r"\x00(\d+)\x00")


def jira_to_slack(text: str) -> str:
    """Convert common Jira wiki markup to Slack mrkdwn.

    Code and noformat blocks are passed through untouched inside
    triple back-ticks.
    """
    if not text:
        return ""

    protected: list[str] = []

    def _protect(match: re.Match) -> str:
        protected.append(f"```{match.group(2).strip(chr(10))}```")
        return _PLACEHOLDER.format(len(protected) - 1)

    out = _CODE_BLOCK.sub(_protect, text.replace("\r\n", "\n"))

    def _quote(match: re.Match) -> str:
        lines = match.group(1).strip("\n").split("\n")
        return "\n".join(f">{line}" for line in lines)

    out = _QUOTE_BLOCK.sub(_quote, out)
    out = _COLOR.sub("", out)
    out = _HEADING.sub(r"*\1*", out)
    out = _MONOSPACE.sub(r"`\1`", out)
    out = _USER_LINK.sub(r"@\1", out)
    out = _NAMED_LINK.sub(r"<\2|\1>", out)
    out = _BARE_LINK.sub(r"<\1>", out)
    out = _NUMBERED_ITEM.sub("1. ", out)
    out = _BULLET_ITEM.sub("• ", out)
    out = _STRIKE.sub(r"~\1~", out)
    out = _CITATION.sub(r"_\1_", out)

    return _PLACEHOLDER_RE.sub(lambda m: protected[int(m.group(1))], out)
