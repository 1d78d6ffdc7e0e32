"""Inbound message dispatch.

Order of operations per message:
1. Extract issue keys from the text
2. Filter through the dedup window (synchronously, before any await)
3. For each surviving key, concurrently: fetch -> compose -> send

A failure for one key is logged and only drops that key's notification.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

import structlog

from jirabot.config.settings import Settings
from jirabot.jira.types import JiraIssue
from jirabot.slack.dedup import DedupWindow
from jirabot.slack.extractor import TicketExtractor
from jirabot.slack.formatter import Attachment, IssueResponseComposer

logger = structlog.get_logger()


class MessageKind(str, Enum):
    """How the bot was addressed."""

    AMBIENT = "ambient"
    MENTION = "mention"
    DIRECT_MENTION = "direct_mention"
    DIRECT_MESSAGE = "direct_message"


@dataclass(frozen=True)
class InboundMessage:
    """Chat message as seen by the dispatcher."""

    kind: MessageKind
    channel: str
    text: str
    ts: str = ""
    thread_ts: Optional[str] = None
    user: Optional[str] = None

    @property
    def reply_thread_ts(self) -> Optional[str]:
        """Thread root to reply under: the existing thread, else this message."""
        return self.thread_ts or self.ts or None


IssueFinder = Callable[[str], Awaitable[JiraIssue]]


class ReplySender(Protocol):
    """Posts an attachment back into the conversation."""

    async def send_reply(
        self,
        message: InboundMessage,
        attachment: Attachment,
        in_thread: bool,
    ) -> None:
        ...


class MessageDispatcher:
    """Turns inbound messages into issue notifications."""

    def __init__(
        self,
        settings: Settings,
        extractor: TicketExtractor,
        dedup: DedupWindow,
        composer: IssueResponseComposer,
        find_issue: IssueFinder,
        sender: ReplySender,
    ) -> None:
        self._settings = settings
        self._extractor = extractor
        self._dedup = dedup
        self._composer = composer
        self._find_issue = find_issue
        self._sender = sender

    def select_response_format(self, message: InboundMessage) -> str:
        """Pick the profile name for a message.

        Direct mentions always get the at-mention profile; anything else
        uses the channel override if configured, else the default.
        """
        if message.kind == MessageKind.DIRECT_MENTION:
            return self._settings.jira_at_response_format
        return self._settings.channel_formats.get(
            message.channel,
            self._settings.jira_response_format,
        )

    def detect(self, message: InboundMessage) -> list[str]:
        """Return keys in the message that have not been notified recently.

        Marks each returned key as notified for the message's channel.
        """
        return [
            key
            for key in self._extractor.extract(message.text)
            if self._dedup.should_notify(message.channel, key)
        ]

    async def handle_inbound_message(self, message: InboundMessage) -> None:
        """Entry point for every inbound chat message."""
        if not message.channel or not message.text:
            logger.info(
                "message_ignored",
                kind=message.kind.value,
                channel=message.channel,
                has_text=bool(message.text),
            )
            return

        found = self.detect(message)
        if not found:
            return

        format_name = self.select_response_format(message)
        logger.info(
            "tickets_detected",
            channel=message.channel,
            kind=message.kind.value,
            tickets=found,
            response_format=format_name,
        )

        await asyncio.gather(*(self._notify(message, key, format_name) for key in found))

    async def _notify(self, message: InboundMessage, issue_key: str, format_name: str) -> None:
        try:
            issue = await self._find_issue(issue_key)
        except Exception as e:
            logger.error("issue_fetch_failed", issue_key=issue_key, channel=message.channel, error=str(e))
            return

        try:
            attachment = self._composer.compose_named(issue, format_name)
        except Exception:
            logger.exception("attachment_compose_failed", issue_key=issue_key, response_format=format_name)
            return

        try:
            await self._sender.send_reply(message, attachment, in_thread=attachment.respond_in_thread)
        except Exception as e:
            logger.error("unable_to_respond", issue_key=issue_key, channel=message.channel, error=str(e))
            return

        logger.info(
            "responded",
            issue_key=issue_key,
            channel=message.channel,
            in_thread=attachment.respond_in_thread,
        )
