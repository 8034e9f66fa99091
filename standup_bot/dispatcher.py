"""
StandupDispatcher - routes inbound Slack events to the standup logic.

The dispatcher owns:
- Bot identity (captured on the first connection)
- The standup store
- History backfill on connect

The transport (e.g., SlackAdapter) owns the connection and only feeds events
through a queue, so all store access happens on the dispatcher's thread.
"""

import enum
import logging
import queue
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Union

from .config import StandupConfig
from .extractor import BotIdentity, extract_status_message
from .formatter import format_ack, format_empty_standup, format_standup
from .history import Conversation, retrieve_standups
from .store import StandupStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionEstablished:
    bot_id: str
    bot_name: str
    conversations: List[Conversation] = field(default_factory=list)
    team_id: str = ""
    team_name: str = ""


@dataclass(frozen=True)
class MessageReceived:
    channel: str
    user: str
    text: str
    ts: str
    type: str = "message"
    subtype: str = ""

    def as_message(self) -> dict:
        return {
            "type": self.type,
            "subtype": self.subtype,
            "user": self.user,
            "text": self.text,
            "ts": self.ts,
        }


@dataclass(frozen=True)
class TransportError:
    error: Exception


@dataclass(frozen=True)
class FatalAuthError:
    error: Exception


Event = Union[ConnectionEstablished, MessageReceived, TransportError, FatalAuthError]


class DispatcherState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    TERMINATED = "terminated"


class StandupDispatcher:
    """
    Single-threaded standup state machine.

    Usage:
        dispatcher = StandupDispatcher(
            config=StandupConfig(history_days_limit=7),
            lookup_user=lambda user_id: get_user_name(token, user_id),
            send=lambda channel, text: post_message(token, channel, text),
        )
        dispatcher.run(events)
    """

    def __init__(
        self,
        config: StandupConfig,
        lookup_user: Callable[[str], str],
        send: Callable[[str, str], object],
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            config: Bot configuration (history limit)
            lookup_user: Resolves a user ID to a display name
            send: Posts (channel_id, text) to Slack
            clock: Returns the current UTC time (tests override it)
        """
        self.config = config
        self.lookup_user = lookup_user
        self.send = send
        self.clock = clock
        self.store = StandupStore()
        self.identity: Optional[BotIdentity] = None
        self.state = DispatcherState.UNINITIALIZED

    def _now(self) -> Optional[datetime]:
        return self.clock() if self.clock else None

    def handle_event(self, event: Event) -> None:
        if isinstance(event, ConnectionEstablished):
            self._handle_connected(event)
        elif isinstance(event, MessageReceived):
            self._handle_message(event)
        elif isinstance(event, TransportError):
            logger.error(f"Slack connection error: {event.error}")
        elif isinstance(event, FatalAuthError):
            logger.error(f"Invalid credentials: {event.error}")
            self.state = DispatcherState.TERMINATED
            sys.exit(1)
        else:
            logger.debug(f"Ignoring unknown event {event!r}")

    def _handle_connected(self, event: ConnectionEstablished) -> None:
        if self.state is not DispatcherState.UNINITIALIZED:
            logger.warning("Received unexpected Connected event")
            return

        logger.info(
            f"Connected as user {event.bot_name} ({event.bot_id}) "
            f"to team {event.team_name} ({event.team_id})"
        )
        self.identity = BotIdentity.create(event.bot_id, event.bot_name)
        retrieve_standups(
            event.conversations,
            self.identity,
            self.config.history_days_limit,
            self.store,
            now=self._now(),
        )
        self.state = DispatcherState.READY

    def _handle_message(self, event: MessageReceived) -> None:
        logger.debug(f"Message received {event!r}")
        if self.state is not DispatcherState.READY:
            logger.warning("Received message event before finishing initialization")
            return
        if not event.channel:
            logger.warning("Received message with empty channel")
            return

        kind = event.channel[0]
        if kind == "D":
            # Direct messages are not supported
            return
        if kind not in ("C", "G"):
            return

        smsg = extract_status_message(self.identity, event.as_message())
        if smsg is None:
            return
        logger.info(f"Received standup message in channel {event.channel}: {smsg!r}")

        self.store.prune_expired(event.channel, self.config.retention, now=self._now())

        if not smsg.text:
            self.send_status(event.channel)
            return
        if not event.user:
            logger.warning("Received standup message without a user")
            return
        self.store.upsert(event.channel, event.user, smsg)
        self.send(event.channel, format_ack(event.user))

    def send_status(self, channel_id: str) -> None:
        """Post the channel's standup digest, or the how-to prompt if it is empty."""
        standup = self.store.snapshot(channel_id)
        if standup:
            text = format_standup(standup, self.lookup_user, now=self._now())
        else:
            text = format_empty_standup(self.identity.name)
        self.send(channel_id, text)

    def run(self, events: "queue.Queue[Event]") -> None:
        """Blocking receive-and-dispatch loop."""
        while self.state is not DispatcherState.TERMINATED:
            self.handle_event(events.get())
