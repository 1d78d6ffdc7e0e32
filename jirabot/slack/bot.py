"""
Slack Bot - wires Jira, the dispatcher and Slack together and runs them.

Owns the background dedup sweeper and the Socket Mode connection.
"""

import asyncio
from typing import Optional

import structlog
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp
from slack_sdk.errors import SlackApiError

from jirabot.config.settings import Settings
from jirabot.jira.client import JiraService
from jirabot.slack.app import create_slack_app, create_socket_handler
from jirabot.slack.dedup import DedupWindow, run_sweeper
from jirabot.slack.dispatcher import MessageDispatcher
from jirabot.slack.extractor import TicketExtractor
from jirabot.slack.formatter import IssueResponseComposer
from jirabot.slack.handlers import SlackReplySender, register_handlers

logger = structlog.get_logger()


class JiraBot:
    """The running bot: one Slack app, one Jira client, one dedup window."""

    def __init__(
        self,
        settings: Settings,
        jira: Optional[JiraService] = None,
        app: Optional[AsyncApp] = None,
    ) -> None:
        self.settings = settings
        self.jira = jira or JiraService(settings)
        self.app = app or create_slack_app(settings)
        self.dedup = DedupWindow(window_seconds=settings.dedup_window_seconds)
        self.dispatcher = MessageDispatcher(
            settings=settings,
            extractor=TicketExtractor(settings.jira_regex),
            dedup=self.dedup,
            composer=IssueResponseComposer(settings),
            find_issue=self.jira.find_issue,
            sender=SlackReplySender(self.app.client),
        )
        register_handlers(self.app, self.dispatcher)

        self._socket_handler: Optional[AsyncSocketModeHandler] = None
        self._sweeper: Optional[asyncio.Task] = None

    async def log_identity(self) -> None:
        """Log who the bot is and which conversations it is in."""
        try:
            identity = await self.app.client.auth_test()
            logger.info("slack_connected", bot=identity.get("user"), team=identity.get("team"))

            result = await self.app.client.users_conversations(
                types="public_channel,private_channel,mpim",
                exclude_archived=True,
                limit=200,
            )
        except SlackApiError as e:
            logger.warning("slack_identity_lookup_failed", error=str(e))
            return

        channels, groups, mpims = [], [], []
        for conversation in result.get("channels", []):
            if conversation.get("is_mpim"):
                mpims.append(conversation.get("name"))
            elif conversation.get("is_private"):
                groups.append(conversation.get("name"))
            else:
                channels.append(f"#{conversation.get('name')}")
        logger.info("slack_conversations", channels=channels, groups=groups, mpims=mpims)

    def start_sweeper(self) -> asyncio.Task:
        """Start the periodic dedup sweep if it is not running."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(
                run_sweeper(self.dedup, self.settings.dedup_sweep_interval_seconds),
                name="dedup_sweeper",
            )
        return self._sweeper

    async def start(self) -> None:
        """Connect to Slack and serve events until stopped (blocking)."""
        self.start_sweeper()
        await self.log_identity()

        self._socket_handler = create_socket_handler(self.app, self.settings)
        logger.info(
            "starting_socket_mode",
            regex=self.settings.jira_regex,
            dedup_window_seconds=self.settings.dedup_window_seconds,
        )
        await self._socket_handler.start_async()

    async def stop(self) -> None:
        """Stop Socket Mode, the sweeper and the Jira session."""
        if self._socket_handler:
            logger.info("stopping_socket_mode")
            await self._socket_handler.close_async()
            self._socket_handler = None

        if self._sweeper and not self._sweeper.done():
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
        elif self._sweeper and not self._sweeper.cancelled() and self._sweeper.exception():
            logger.error("dedup_sweeper_failed", error=str(self._sweeper.exception()))
        self._sweeper = None

        await self.jira.close()
