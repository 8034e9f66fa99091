"""
Standup rendering - Slack mrkdwn digests, prompts and acknowledgements.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from .history import ConversationStandup

logger = logging.getLogger(__name__)

STANDUP_HEADER = "¡Ándale! ¡Ándale! here's the standup status :tada:"

_MINUTE = timedelta(minutes=1)
_HOUR = timedelta(hours=1)
_DAY = timedelta(days=1)
_WEEK = timedelta(weeks=1)
_MONTH = timedelta(days=30)
_YEAR = 12 * _MONTH

# (upper bound, label, unit to divide by); unit None means a fixed label
_MAGNITUDES = [
    (timedelta(seconds=1), "now", None),
    (timedelta(seconds=2), "1 second", None),
    (_MINUTE, "{} seconds", timedelta(seconds=1)),
    (2 * _MINUTE, "1 minute", None),
    (_HOUR, "{} minutes", _MINUTE),
    (2 * _HOUR, "1 hour", None),
    (_DAY, "{} hours", _HOUR),
    (2 * _DAY, "1 day", None),
    (_WEEK, "{} days", _DAY),
    (2 * _WEEK, "1 week", None),
    (_MONTH, "{} weeks", _WEEK),
    (2 * _MONTH, "1 month", None),
    (_YEAR, "{} months", _MONTH),
    (18 * _MONTH, "1 year", None),
    (2 * _YEAR, "2 years", None),
]


def humanize_time(then: datetime, now: Optional[datetime] = None) -> str:
    """Relative time phrase such as "3 hours ago" or "2 days from now"."""
    now = now or datetime.now(timezone.utc)
    delta = now - then
    suffix = "ago"
    if delta < timedelta(0):
        delta = -delta
        suffix = "from now"

    for bound, label, unit in _MAGNITUDES:
        if delta < bound:
            if label == "now":
                return label
            if unit is not None:
                label = label.format(delta // unit)
            return f"{label} {suffix}"
    return f"{delta // _YEAR} years {suffix}"


def sorted_author_ids(standup: ConversationStandup) -> List[str]:
    """User IDs of the standup ordered by message timestamp, newest first."""
    return sorted(standup, key=lambda user_id: (-standup[user_id].timestamp.timestamp(), user_id))


def _resolve_user_name(lookup_user: Callable[[str], str], user_id: str) -> str:
    try:
        return lookup_user(user_id)
    except Exception as e:
        logger.error(f"Couldn't get user information for user {user_id}: {e}")
        return f"id{user_id}"


def format_standup(
    standup: ConversationStandup,
    lookup_user: Callable[[str], str],
    now: Optional[datetime] = None,
) -> str:
    """
    Render a channel standup, most recent message first.

    Args:
        standup: Latest standup message per user
        lookup_user: Resolves a user ID to a display name; failures fall back
            to a placeholder name
        now: Reference time for the relative timestamps

    Returns:
        Slack mrkdwn text
    """
    lines = [STANDUP_HEADER]
    for user_id in sorted_author_ids(standup):
        smsg = standup[user_id]
        user_name = _resolve_user_name(lookup_user, user_id)
        lines.append(f"*{user_name}*: {smsg.text} _({humanize_time(smsg.timestamp, now)})_")
    return "\n".join(lines) + "\n"


def format_empty_standup(bot_name: str) -> str:
    return (
        "No standup messages found\n"
        f"Type a message starting with *@{bot_name}* to record your standup message"
    )


def format_ack(user_id: str) -> str:
    return f"<@{user_id}>: ¡Yeppa! standup status recorded :taco:"
