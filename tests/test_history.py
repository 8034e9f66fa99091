"""Tests for standup_bot.history"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from standup_bot.extractor import BotIdentity, extract_status_message, parse_slack_timestamp
from standup_bot.history import (
    Conversation,
    HistoryPage,
    HistoryQuery,
    retrieve_conversation_standup,
    retrieve_standups,
)
from standup_bot.store import StandupStore
from standup_bot.utils import SlackAPIError

NOW = datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)


def ts(seconds):
    return f"{seconds}.000000"


def msg(user, text, seconds):
    return {"type": "message", "user": user, "text": text, "ts": ts(seconds)}


class FakeHistory:
    """Serves canned pages and records the queries it receives."""

    def __init__(self, *pages):
        self.pages = list(pages)
        self.queries = []

    def __call__(self, query):
        self.queries.append(query)
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page


@pytest.fixture
def identity():
    return BotIdentity.create("UBOT", "standup")


def make_conversation(fetch, cid="C123", name="general"):
    return Conversation(id=cid, name=name, fetch_history=fetch)


class TestRetrieveConversationStandup:
    """Tests for retrieve_conversation_standup()"""

    def test_latest_message_per_user(self, identity):
        """Keeps only each user's most recent standup message."""
        fetch = FakeHistory(HistoryPage(messages=[
            msg("UA", "<@UBOT>: done with X", 300),
            msg("UB", "<@UBOT>: fixing Y", 200),
            msg("UA", "<@UBOT>: working on X", 100),
        ]))

        standup, err = retrieve_conversation_standup(make_conversation(fetch), identity, 7, now=NOW)

        assert err is None
        assert set(standup) == {"UA", "UB"}
        assert standup["UA"].text == "done with X"
        assert standup["UA"].timestamp == parse_slack_timestamp(ts(300))
        assert standup["UB"].text == "fixing Y"

    def test_first_query_window(self, identity):
        """First page spans [now - days, now], inclusive, 1000 messages."""
        fetch = FakeHistory(HistoryPage(messages=[]))

        retrieve_conversation_standup(make_conversation(fetch), identity, 3, now=NOW)

        assert fetch.queries == [HistoryQuery(
            oldest=str(int((NOW - timedelta(days=3)).timestamp())),
            latest=str(int(NOW.timestamp())),
            limit=1000,
            inclusive=True,
        )]

    def test_pagination_moves_latest_boundary(self, identity):
        """Next page ends, exclusively, at the oldest message of the previous one."""
        fetch = FakeHistory(
            HistoryPage(
                messages=[msg("UA", "<@UBOT>: newest", 300), msg("UB", "<@UBOT>: b", 200)],
                has_more=True,
            ),
            HistoryPage(
                messages=[msg("UA", "<@UBOT>: older", 150), msg("UC", "<@UBOT>: c", 50)],
                has_more=False,
            ),
        )

        standup, err = retrieve_conversation_standup(make_conversation(fetch), identity, 7, now=NOW)

        assert err is None
        assert len(fetch.queries) == 2
        second = fetch.queries[1]
        assert second.latest == ts(200)
        assert second.inclusive is False
        assert second.oldest == fetch.queries[0].oldest
        assert standup["UA"].text == "newest"
        assert standup["UB"].text == "b"
        assert standup["UC"].text == "c"

    def test_stops_on_empty_page(self, identity):
        """An empty page ends pagination even when has_more is set."""
        fetch = FakeHistory(HistoryPage(messages=[], has_more=True))

        standup, err = retrieve_conversation_standup(make_conversation(fetch), identity, 7, now=NOW)

        assert standup == {}
        assert err is None
        assert len(fetch.queries) == 1

    def test_error_returns_partial_result(self, identity):
        """A fetch error stops pagination and keeps what was collected."""
        failure = SlackAPIError("conversations.history", "ratelimited")
        fetch = FakeHistory(
            HistoryPage(messages=[msg("UA", "<@UBOT>: a", 300)], has_more=True),
            failure,
        )

        standup, err = retrieve_conversation_standup(make_conversation(fetch), identity, 7, now=NOW)

        assert err is failure
        assert standup["UA"].text == "a"

    def test_status_requests_not_recorded(self, identity):
        """A bare mention doesn't hide the user's older standup message."""
        fetch = FakeHistory(HistoryPage(messages=[
            msg("UA", "<@UBOT>", 300),
            msg("UA", "<@UBOT>: the real update", 200),
        ]))

        standup, _ = retrieve_conversation_standup(make_conversation(fetch), identity, 7, now=NOW)

        assert standup["UA"].text == "the real update"

    def test_bad_timestamp_skips_only_that_message(self, identity):
        """An out-of-range timestamp drops its message and the scan goes on."""
        fetch = FakeHistory(HistoryPage(messages=[
            {"type": "message", "user": "UA", "text": "<@UBOT>: broken", "ts": "99999999999999.1"},
            msg("UB", "<@UBOT>: fixing Y", 200),
            msg("UA", "<@UBOT>: working on X", 100),
        ]))

        standup, err = retrieve_conversation_standup(make_conversation(fetch), identity, 7, now=NOW)

        assert err is None
        assert standup["UB"].text == "fixing Y"
        assert standup["UA"].text == "working on X"

    def test_ignores_unaddressed_and_userless_messages(self, identity):
        fetch = FakeHistory(HistoryPage(messages=[
            msg("UA", "lunch?", 300),
            {"type": "message", "bot_id": "B1", "text": "<@UBOT>: beep", "ts": ts(250)},
            {"type": "message", "subtype": "channel_join", "user": "UB", "text": "<@UBOT>: hi", "ts": ts(200)},
        ]))

        standup, _ = retrieve_conversation_standup(make_conversation(fetch), identity, 7, now=NOW)

        assert standup == {}

    def test_matches_live_upserts(self, identity):
        """Scanning a chronological upsert sequence gives the same standup as the upserts."""
        sequence = [
            ("UA", "<@UBOT>: one", 100),
            ("UB", "<@UBOT>: two", 110),
            ("UA", "<@UBOT>: three", 120),
            ("UC", "<@UBOT>: four", 130),
            ("UB", "<@UBOT>: five", 140),
        ]
        store = StandupStore()
        for user, text, seconds in sequence:
            store.upsert("C123", user, extract_status_message(identity, msg(user, text, seconds)))

        newest_first = [msg(user, text, seconds) for user, text, seconds in reversed(sequence)]
        fetch = FakeHistory(HistoryPage(messages=newest_first))
        standup, _ = retrieve_conversation_standup(make_conversation(fetch), identity, 7, now=NOW)

        assert standup == store.snapshot("C123")


class TestRetrieveStandups:
    """Tests for retrieve_standups()"""

    def test_backfills_every_conversation(self, identity):
        store = StandupStore()
        conversations = [
            make_conversation(FakeHistory(HistoryPage(messages=[msg("UA", "<@UBOT>: a", 100)])), "C1"),
            make_conversation(FakeHistory(HistoryPage(messages=[msg("UB", "<@UBOT>: b", 100)])), "G2"),
        ]

        retrieve_standups(conversations, identity, 7, store, now=NOW)

        assert store.snapshot("C1")["UA"].text == "a"
        assert store.snapshot("G2")["UB"].text == "b"

    def test_installs_partial_result_on_error(self, identity, caplog):
        """Errors are logged and the partial standup is still stored."""
        store = StandupStore()
        fetch = FakeHistory(
            HistoryPage(messages=[msg("UA", "<@UBOT>: a", 100)], has_more=True),
            SlackAPIError("conversations.history", "internal_error"),
        )

        with caplog.at_level(logging.ERROR):
            retrieve_standups([make_conversation(fetch)], identity, 7, store, now=NOW)

        assert "Can't retrieve channel standup for channel #general" in caplog.text
        assert store.snapshot("C123")["UA"].text == "a"

    def test_replaces_existing_standup(self, identity):
        store = StandupStore()
        store.upsert("C123", "UZ", extract_status_message(identity, msg("UZ", "<@UBOT>: stale", 50)))
        fetch = FakeHistory(HistoryPage(messages=[msg("UA", "<@UBOT>: a", 100)]))

        retrieve_standups([make_conversation(fetch)], identity, 7, store, now=NOW)

        assert set(store.snapshot("C123")) == {"UA"}
