"""
History reconciliation - rebuilds a channel standup from Slack message history.

Slack returns history newest first, so the first qualifying message seen
for a user is that user's latest standup message.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Tuple

from .extractor import BotIdentity, StatusMessage, extract_status_message

if TYPE_CHECKING:
    from .store import StandupStore

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 1000

# Latest standup message of each user in a channel, keyed by user ID
ConversationStandup = Dict[str, StatusMessage]


@dataclass
class HistoryQuery:
    """Bounds of one conversations.history request."""
    oldest: str
    latest: str
    limit: int = HISTORY_PAGE_SIZE
    inclusive: bool = True


@dataclass
class HistoryPage:
    """One page of history, newest message first."""
    messages: List[Dict]
    has_more: bool = False


@dataclass
class Conversation:
    """
    A channel or private group the bot has joined.

    fetch_history is bound to the conversation ID, so public channels and
    private groups only differ in the function they carry.
    """
    id: str
    name: str
    fetch_history: Callable[[HistoryQuery], HistoryPage]
    is_private: bool = False


def _slack_ts(moment: datetime) -> str:
    return str(int(moment.timestamp()))


def retrieve_conversation_standup(
    conversation: Conversation,
    identity: BotIdentity,
    history_days_limit: int,
    now: Optional[datetime] = None,
) -> Tuple[ConversationStandup, Optional[Exception]]:
    """
    Collect the latest standup message of every user within the history limit.

    Args:
        conversation: Channel to scan
        identity: Bot identity used to recognize standup messages
        history_days_limit: How many days of history to scan
        now: Upper bound of the window (defaults to the current UTC time)

    Returns:
        (standup, error). On a fetch error the standup holds whatever was
        collected before the failure.
    """
    now = now or datetime.now(timezone.utc)
    query = HistoryQuery(
        oldest=_slack_ts(now - timedelta(days=history_days_limit)),
        latest=_slack_ts(now),
    )

    # It would be way more efficient to search for mentions of the bot
    # instead of traversing the whole history, but search is not allowed for bots
    standup: ConversationStandup = {}
    while True:
        try:
            page = conversation.fetch_history(query)
        except Exception as e:
            return standup, e

        for msg in page.messages:
            user = msg.get("user")
            if not user or user in standup:
                # we already have the latest standup message for this user
                continue
            smsg = extract_status_message(identity, msg)
            if smsg and smsg.text:
                standup[user] = smsg

        if not page.has_more or not page.messages:
            break
        query = HistoryQuery(
            oldest=query.oldest,
            latest=page.messages[-1]["ts"],
            limit=query.limit,
            inclusive=False,
        )

    return standup, None


def retrieve_standups(
    conversations: Iterable[Conversation],
    identity: BotIdentity,
    history_days_limit: int,
    store: "StandupStore",
    now: Optional[datetime] = None,
) -> None:
    """Backfill the store one conversation at a time, keeping partial results."""
    for conversation in conversations:
        logger.info(f"Retrieving standup for channel #{conversation.name} ({conversation.id})")
        standup, err = retrieve_conversation_standup(
            conversation, identity, history_days_limit, now=now
        )
        if err is not None:
            logger.error(f"Can't retrieve channel standup for channel #{conversation.name}: {err}")
        store.backfill(conversation.id, standup)
        logger.info(
            f"Standup for channel #{conversation.name} ({conversation.id}) updated to {standup!r}"
        )
