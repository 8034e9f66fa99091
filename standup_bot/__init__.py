"""
standup-bot: Slack bot that aggregates each member's latest standup message.

Usage:
    from standup_bot import SlackAdapter, StandupConfig

    config = StandupConfig(history_days_limit=7)
    SlackAdapter(config).start()

Mention the bot with a status to record it, mention it alone to get the digest:
    @standup: working on the release notes
    @standup
"""

from .config import StandupConfig
from .dispatcher import (
    ConnectionEstablished,
    DispatcherState,
    FatalAuthError,
    MessageReceived,
    StandupDispatcher,
    TransportError,
)
from .extractor import BotIdentity, StatusMessage, extract_status_message, parse_slack_timestamp
from .formatter import format_standup, humanize_time
from .history import Conversation, HistoryPage, HistoryQuery, retrieve_conversation_standup
from .slack_adapter import SlackAdapter
from .store import StandupStore

__all__ = [
    "StandupConfig",
    "StandupDispatcher",
    "DispatcherState",
    "ConnectionEstablished",
    "MessageReceived",
    "TransportError",
    "FatalAuthError",
    "BotIdentity",
    "StatusMessage",
    "extract_status_message",
    "parse_slack_timestamp",
    "format_standup",
    "humanize_time",
    "Conversation",
    "HistoryPage",
    "HistoryQuery",
    "retrieve_conversation_standup",
    "SlackAdapter",
    "StandupStore",
]
__version__ = "0.1.0"
