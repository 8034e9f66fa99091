"""
Command-line entry point.

Usage:
    $ standup-bot xoxb-...                      # app token from SLACK_APP_TOKEN
    $ standup-bot --debug --history-limit 3 --app-token xapp-... xoxb-...
"""

import logging
import sys
from typing import Optional

import click

from .config import DEFAULT_HISTORY_DAYS_LIMIT, StandupConfig
from .slack_adapter import SlackAdapter

logger = logging.getLogger(__name__)


def setup_logging(debug: bool) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.command(
    help="Slack bot that keeps the latest standup message of every channel member.",
    epilog="You can obtain a bot token from https://api.slack.com/apps",
)
@click.argument("token", envvar="SLACK_BOT_TOKEN", required=True)
@click.option("--debug", is_flag=True, default=False, help="Print debug information")
@click.option(
    "--history-limit",
    type=click.IntRange(min=1),
    default=DEFAULT_HISTORY_DAYS_LIMIT,
    show_default=True,
    help="History limit (in days)",
)
@click.option(
    "--app-token",
    envvar="SLACK_APP_TOKEN",
    required=True,
    metavar="TOKEN",
    help="Slack app-level token for Socket Mode.",
)
def main(token: str, debug: bool, history_limit: int, app_token: Optional[str]) -> None:
    """Run the standup bot until the process is stopped."""
    config = StandupConfig(
        history_days_limit=history_limit,
        debug=debug,
        bot_token=token,
        app_token=app_token,
    )
    setup_logging(config.debug)
    logger.info(f"Starting standup bot (history limit: {config.history_days_limit} days)...")
    SlackAdapter(config).start()
