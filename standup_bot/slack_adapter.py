"""
SlackAdapter - Slack transport for the standup dispatcher.

Handles authentication, Socket Mode connection and event translation.
Events are queued and consumed by StandupDispatcher on the calling thread.
"""

import functools
import logging
import queue
import signal
import sys
from typing import Dict, Optional

from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler

from .config import StandupConfig
from .dispatcher import (
    ConnectionEstablished,
    FatalAuthError,
    MessageReceived,
    StandupDispatcher,
    TransportError,
)
from .history import Conversation
from .utils import (
    SlackAPIError,
    auth_test,
    get_history_page,
    get_joined_conversations,
    get_user_name,
    post_message,
)

logger = logging.getLogger(__name__)

FATAL_AUTH_ERRORS = {"invalid_auth", "not_authed", "account_inactive", "token_revoked"}


class SlackAdapter:
    """Slack Socket Mode adapter. Feeds events to a StandupDispatcher."""

    def __init__(self, config: StandupConfig):
        config.require_tokens()
        self.config = config
        self.bot_token = config.bot_token
        self.app_token = config.app_token
        self.events: "queue.Queue" = queue.Queue()
        self.app: Optional[App] = None
        self.handler: Optional[SocketModeHandler] = None

    def make_dispatcher(self) -> StandupDispatcher:
        return StandupDispatcher(
            config=self.config,
            lookup_user=functools.partial(get_user_name, self.bot_token),
            send=functools.partial(post_message, self.bot_token),
        )

    def make_conversation(self, channel: Dict) -> Conversation:
        """Bind conversations.history to a channel object from conversations.list."""
        return Conversation(
            id=channel["id"],
            name=channel.get("name", channel["id"]),
            fetch_history=functools.partial(get_history_page, self.bot_token, channel["id"]),
            is_private=bool(channel.get("is_private")),
        )

    def connect_event(self):
        """Authenticate and describe the joined conversations as a connect event."""
        try:
            auth = auth_test(self.bot_token)
        except SlackAPIError as e:
            if e.error in FATAL_AUTH_ERRORS:
                return FatalAuthError(e)
            raise

        channels = get_joined_conversations(self.bot_token)
        return ConnectionEstablished(
            bot_id=auth["user_id"],
            bot_name=auth.get("user", auth["user_id"]),
            conversations=[self.make_conversation(c) for c in channels],
            team_id=auth.get("team_id", ""),
            team_name=auth.get("team", ""),
        )

    def _register_handlers(self):
        """Register Slack event handlers."""

        @self.app.event("message")
        def handle_message(event):
            self._enqueue_message(event)

    def _enqueue_message(self, event: Dict):
        self.events.put(MessageReceived(
            channel=event.get("channel", ""),
            user=event.get("user", ""),
            text=event.get("text", ""),
            ts=event.get("ts", ""),
            type=event.get("type", ""),
            subtype=event.get("subtype", ""),
        ))

    def _on_socket_error(self, error: Exception):
        self.events.put(TransportError(error))

    def _shutdown_handler(self, signum, frame):
        """Graceful shutdown."""
        logger.info("Shutdown signal received...")
        if self.handler:
            self.handler.close()
        sys.exit(0)

    def start(self, dispatcher: Optional[StandupDispatcher] = None):
        """Connect to Slack and run the dispatcher loop until terminated."""
        dispatcher = dispatcher or self.make_dispatcher()

        self.events.put(self.connect_event())

        self.app = App(token=self.bot_token, token_verification_enabled=False)
        self._register_handlers()

        signal.signal(signal.SIGTERM, self._shutdown_handler)
        signal.signal(signal.SIGINT, self._shutdown_handler)

        self.handler = SocketModeHandler(self.app, self.app_token)
        self.handler.client.on_error_listeners.append(self._on_socket_error)
        self.handler.connect()

        dispatcher.run(self.events)
