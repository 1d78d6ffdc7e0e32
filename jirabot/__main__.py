"""Main entry point for the Jira Slack bot."""

import asyncio
import logging
import sys

import structlog

from jirabot import __version__
from jirabot.config import get_settings
from jirabot.slack.bot import JiraBot


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """Route stdlib logging and structlog through one structured pipeline."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        stream=sys.stdout,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


async def run() -> None:
    """Run the bot until cancelled."""
    settings = get_settings()
    bot = JiraBot(settings)
    try:
        await bot.start()
    finally:
        await bot.stop()


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    logger = structlog.get_logger()
    logger.info("jirabot_starting", version=__version__, jira=settings.jira_base_url)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("jirabot_stopped")


if __name__ == "__main__":
    main()
