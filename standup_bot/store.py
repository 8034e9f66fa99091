"""
In-memory standup store - latest standup message per user, per channel.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from .extractor import StatusMessage
from .history import ConversationStandup

logger = logging.getLogger(__name__)


class StandupStore:
    """
    Standups of every channel known to the bot.

    Not thread-safe: owned by the dispatcher's single event loop.
    """

    def __init__(self):
        self._standups: Dict[str, ConversationStandup] = {}

    def __contains__(self, channel_id: str) -> bool:
        return channel_id in self._standups

    def __len__(self) -> int:
        return len(self._standups)

    def backfill(self, channel_id: str, standup: ConversationStandup) -> None:
        """Replace a channel's standup wholesale."""
        self._standups[channel_id] = dict(standup)

    def upsert(self, channel_id: str, user_id: str, message: StatusMessage) -> None:
        """Record a user's latest standup message. Last write wins."""
        self._standups.setdefault(channel_id, {})[user_id] = message

    def prune_expired(
        self,
        channel_id: str,
        retention: timedelta,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Drop messages strictly older than now - retention.

        Returns:
            Number of removed entries
        """
        standup = self._standups.get(channel_id)
        if not standup:
            return 0

        cutoff = (now or datetime.now(timezone.utc)) - retention
        expired = [user_id for user_id, msg in standup.items() if msg.timestamp < cutoff]
        for user_id in expired:
            del standup[user_id]

        if expired:
            logger.debug(f"Pruned {len(expired)} expired standup messages from channel {channel_id}")
        return len(expired)

    def snapshot(self, channel_id: str) -> Optional[ConversationStandup]:
        """Copy of a channel's standup, or None if the channel is unknown."""
        standup = self._standups.get(channel_id)
        if standup is None:
            return None
        return dict(standup)
