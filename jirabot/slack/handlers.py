"""
Slack Handlers - translate Slack events into dispatcher messages.

app_mention events become direct mentions (text starts with the bot) or
mentions (bot named elsewhere). Plain message events become direct messages
in IMs and ambient messages everywhere else.
"""

from typing import Any, Optional

import structlog
from slack_bolt.async_app import AsyncApp
from slack_sdk.web.async_client import AsyncWebClient

from jirabot.slack.dispatcher import InboundMessage, MessageDispatcher, MessageKind
from jirabot.slack.formatter import Attachment

logger = structlog.get_logger()

# Message subtypes that are not fresh human messages
IGNORED_SUBTYPES = frozenset(
    {
        "bot_message",
        "message_changed",
        "message_deleted",
        "message_replied",
        "channel_join",
        "channel_leave",
    }
)


def _mention_tag(bot_user_id: Optional[str]) -> Optional[str]:
    return f"<@{bot_user_id}>" if bot_user_id else None


def message_from_app_mention(event: dict[str, Any], bot_user_id: Optional[str]) -> InboundMessage:
    """Build a mention message from an app_mention event."""
    text = event.get("text") or ""
    tag = _mention_tag(bot_user_id)
    kind = MessageKind.DIRECT_MENTION if tag and text.lstrip().startswith(tag) else MessageKind.MENTION
    return InboundMessage(
        kind=kind,
        channel=event.get("channel", ""),
        text=text,
        ts=event.get("ts", ""),
        thread_ts=event.get("thread_ts"),
        user=event.get("user"),
    )


def message_from_event(event: dict[str, Any], bot_user_id: Optional[str]) -> Optional[InboundMessage]:
    """Build an ambient/direct message from a message event.

    Returns None for events the bot should not react to: bot messages,
    edits and deletes, and messages that mention the bot (those arrive
    separately as app_mention) outside of IMs.
    """
    if event.get("subtype") in IGNORED_SUBTYPES or event.get("bot_id"):
        return None

    text = event.get("text") or ""
    is_im = event.get("channel_type") == "im"
    tag = _mention_tag(bot_user_id)
    # Slack sends no app_mention for IMs
    if tag and tag in text and not is_im:
        return None

    kind = MessageKind.DIRECT_MESSAGE if is_im else MessageKind.AMBIENT
    return InboundMessage(
        kind=kind,
        channel=event.get("channel", ""),
        text=text,
        ts=event.get("ts", ""),
        thread_ts=event.get("thread_ts"),
        user=event.get("user"),
    )


class SlackReplySender:
    """Posts issue attachments through the Slack Web API."""

    def __init__(self, client: AsyncWebClient) -> None:
        self._client = client

    async def send_reply(
        self,
        message: InboundMessage,
        attachment: Attachment,
        in_thread: bool,
    ) -> None:
        """Post the attachment to the message's channel, or its thread.

        Raises:
            SlackApiError: If Slack rejects the post.
        """
        await self._client.chat_postMessage(
            channel=message.channel,
            text=attachment.fallback,
            attachments=[attachment.to_slack()],
            thread_ts=message.reply_thread_ts if in_thread else None,
        )


def register_handlers(app: AsyncApp, dispatcher: MessageDispatcher) -> None:
    """
    Register the message handlers with the Slack app.

    Args:
        app: Slack Bolt async app instance.
        dispatcher: Dispatcher receiving every translated message.
    """

    @app.event("app_mention")
    async def handle_app_mention(event: dict, context) -> None:
        message = message_from_app_mention(event, context.get("bot_user_id"))
        logger.debug("app_mention_received", channel=message.channel, kind=message.kind.value)
        await dispatcher.handle_inbound_message(message)

    @app.event("message")
    async def handle_message(event: dict, context) -> None:
        message = message_from_event(event, context.get("bot_user_id"))
        if message is None:
            logger.debug("message_skipped", subtype=event.get("subtype"), channel=event.get("channel"))
            return
        await dispatcher.handle_inbound_message(message)

    logger.info("slack_handlers_registered", events=["app_mention", "message"])
