"""
Standup message extraction - recognizes Slack messages addressed to the bot.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

logger = logging.getLogger(__name__)

EXTRACT_MSG_GROUP = "msg"

# Lines starting with <@BOTID>, optionally followed by a colon
EXTRACT_MSG_PATTERN = r"^\s*<@{bot_id}>:?\s*(?P<" + EXTRACT_MSG_GROUP + r">.*)$"

_SLACK_TS_RE = re.compile(r"^\s*([+-]?\d+)\.(\d+)")


@dataclass(frozen=True)
class StatusMessage:
    """A Slack message directed to the bot (i.e. with a @botname prefix)."""
    timestamp: datetime
    text: str


@dataclass(frozen=True)
class BotIdentity:
    """The bot's own Slack user, captured once on connect."""
    id: str
    name: str
    pattern: re.Pattern

    @classmethod
    def create(cls, bot_id: str, bot_name: str) -> "BotIdentity":
        pattern = re.compile(
            EXTRACT_MSG_PATTERN.format(bot_id=re.escape(bot_id)), re.MULTILINE
        )
        return cls(id=bot_id, name=bot_name, pattern=pattern)


def parse_slack_timestamp(ts: str) -> datetime:
    """
    Parse a Slack "<seconds>.<fraction>" timestamp into a UTC datetime.

    The fractional integer is scaled by 1000 into nanoseconds, so
    "1500000000.000123" lands 123 microseconds past the second and
    "1500000000.5" lands 5 microseconds past it. Only relative ordering
    matters to the standup.

    Raises:
        ValueError: if ts is not in "<int>.<int>" form or is out of range
    """
    match = _SLACK_TS_RE.match(ts or "")
    if not match:
        raise ValueError(f"Can't parse timestamp {ts!r}")
    seconds, fraction = int(match.group(1)), int(match.group(2))
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    try:
        return epoch + timedelta(seconds=seconds, microseconds=fraction)
    except OverflowError:
        raise ValueError(f"Timestamp out of range {ts!r}") from None


def extract_status_message(identity: BotIdentity, message: Dict) -> Optional[StatusMessage]:
    """
    Extract the standup text of a Slack message addressed to the bot.

    Every line starting with a mention of the bot is replaced by the text
    following the mention. A message mentioning only the bot yields an empty
    text, which callers treat as a status request.

    Args:
        identity: The bot identity whose mention pattern is applied
        message: Slack message object (type, subtype, text, ts)

    Returns:
        StatusMessage, or None if the message is not addressed to the bot
    """
    if message.get("type") != "message" or message.get("subtype"):
        return None

    text = message.get("text") or ""
    standup_text, count = identity.pattern.subn(r"\g<" + EXTRACT_MSG_GROUP + ">", text)
    if count == 0:
        # Nothing was extracted
        return None

    try:
        ts = parse_slack_timestamp(message.get("ts", ""))
    except ValueError:
        logger.warning(f"Can't parse timestamp {message.get('ts')!r}")
        return None

    return StatusMessage(timestamp=ts, text=standup_text)
