"""Slack Bolt application with Socket Mode."""

import structlog
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp

from jirabot.config.settings import Settings

logger = structlog.get_logger()


def create_slack_app(settings: Settings) -> AsyncApp:
    """Create the Slack Bolt async app."""
    app = AsyncApp(token=settings.slack_bot_token)
    logger.info("slack_app_initialized")
    return app


def create_socket_handler(app: AsyncApp, settings: Settings) -> AsyncSocketModeHandler:
    """
    Create the Socket Mode handler.

    Socket Mode creates an outbound WebSocket connection to Slack,
    eliminating the need for a public IP or webhook endpoint.
    """
    if not settings.slack_app_token:
        logger.error("slack_app_token_missing")
        raise ValueError("SLACK_APP_TOKEN is required for Socket Mode")

    handler = AsyncSocketModeHandler(app=app, app_token=settings.slack_app_token)
    handler.client.auto_reconnect_enabled = settings.slack_auto_reconnect
    return handler
