"""
Bot configuration.
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

DEFAULT_HISTORY_DAYS_LIMIT = 7


@dataclass
class StandupConfig:
    """Configuration for the standup bot.

    Optional:
        history_days_limit: Days of history kept per channel (>= 1)
        debug: Verbose logging
        bot_token: Slack bot token (defaults to SLACK_BOT_TOKEN)
        app_token: Slack app-level token for Socket Mode (defaults to SLACK_APP_TOKEN)
    """

    history_days_limit: int = DEFAULT_HISTORY_DAYS_LIMIT
    debug: bool = False
    bot_token: Optional[str] = None
    app_token: Optional[str] = None

    def __post_init__(self):
        if self.history_days_limit < 1:
            raise ValueError("history_days_limit must be at least 1")
        self.bot_token = self.bot_token or os.environ.get("SLACK_BOT_TOKEN")
        self.app_token = self.app_token or os.environ.get("SLACK_APP_TOKEN")

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.history_days_limit)

    def require_tokens(self) -> None:
        """Raise ValueError unless both Slack tokens are available."""
        if not self.bot_token or not self.app_token:
            raise ValueError("Missing SLACK_BOT_TOKEN or SLACK_APP_TOKEN")
