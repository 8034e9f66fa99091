"""
Slack Web API utilities - history pages, user lookup, joined conversations, posting.
"""

import logging
from typing import Dict, List

import httpx

from .history import HistoryPage, HistoryQuery

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"


class SlackAPIError(Exception):
    """A Slack Web API call answered with ok: false."""

    def __init__(self, method: str, error: str):
        super().__init__(f"Slack API error in {method}: {error}")
        self.method = method
        self.error = error


def _api_get(
    slack_token: str,
    method: str,
    params: Dict,
    timeout: float = 10.0,
) -> Dict:
    """Call a Slack Web API read method, raising SlackAPIError on ok: false."""
    with httpx.Client(timeout=timeout) as client:
        response = client.get(
            f"{SLACK_API_URL}/{method}",
            headers={"Authorization": f"Bearer {slack_token}"},
            params=params,
        )
        data = response.json()
    if not data.get("ok"):
        raise SlackAPIError(method, data.get("error", "unknown_error"))
    return data


def _api_post(
    slack_token: str,
    method: str,
    payload: Dict,
    timeout: float = 10.0,
) -> Dict:
    """Call a Slack Web API write method with a JSON body, raising SlackAPIError on ok: false."""
    with httpx.Client(timeout=timeout) as client:
        response = client.post(
            f"{SLACK_API_URL}/{method}",
            headers={
                "Authorization": f"Bearer {slack_token}",
                "Content-Type": "application/json"
            },
            json=payload,
        )
        data = response.json()
    if not data.get("ok"):
        raise SlackAPIError(method, data.get("error", "unknown_error"))
    return data


def auth_test(slack_token: str, timeout: float = 10.0) -> Dict:
    """
    Identify the bot user behind a token.

    Returns:
        auth.test payload (user_id, user, team_id, team, ...)

    Raises:
        SlackAPIError: invalid_auth, not_authed, ... on bad credentials
    """
    return _api_get(slack_token, "auth.test", {}, timeout=timeout)


def get_history_page(
    slack_token: str,
    channel: str,
    query: HistoryQuery,
    timeout: float = 10.0,
) -> HistoryPage:
    """
    Fetch one page of channel history from Slack, newest message first.

    Args:
        slack_token: Slack Bot OAuth token
        channel: Channel ID
        query: Time window, page size and boundary inclusiveness
        timeout: Request timeout in seconds

    Returns:
        HistoryPage with the page's messages and the has_more flag

    Raises:
        SlackAPIError: on a Slack API error
        httpx.HTTPError: on transport failures
    """
    data = _api_get(
        slack_token,
        "conversations.history",
        {
            "channel": channel,
            "oldest": query.oldest,
            "latest": query.latest,
            "limit": query.limit,
            "inclusive": "true" if query.inclusive else "false",
        },
        timeout=timeout,
    )
    messages = data.get("messages", [])
    logger.debug(f"Got {len(messages)} messages from channel {channel}")
    return HistoryPage(messages=messages, has_more=bool(data.get("has_more")))


def get_user_name(slack_token: str, user_id: str, timeout: float = 10.0) -> str:
    """
    Resolve a Slack user ID to its user name.

    Raises:
        SlackAPIError: on a Slack API error (e.g. user_not_found)
        httpx.HTTPError: on transport failures
    """
    data = _api_get(slack_token, "users.info", {"user": user_id}, timeout=timeout)
    return data["user"]["name"]


def get_joined_conversations(
    slack_token: str,
    timeout: float = 10.0,
) -> List[Dict]:
    """
    Discover the public channels and private groups the bot is a member of.

    Args:
        slack_token: Slack Bot OAuth token
        timeout: Request timeout in seconds

    Returns:
        List of Slack channel objects

    Raises:
        SlackAPIError: on a Slack API error
        httpx.HTTPError: on transport failures
    """
    channels = []
    cursor = None

    while True:
        params = {
            "types": "public_channel,private_channel",
            "exclude_archived": "true",
            "limit": 200,
        }
        if cursor:
            params["cursor"] = cursor

        data = _api_get(slack_token, "conversations.list", params, timeout=timeout)
        channels.extend(c for c in data.get("channels", []) if c.get("is_member"))

        cursor = data.get("response_metadata", {}).get("next_cursor")
        if not cursor:
            break

    logger.debug(f"Discovered {len(channels)} joined conversations")
    return channels


def post_message(
    slack_token: str,
    channel: str,
    message: str,
    timeout: float = 10.0,
) -> bool:
    """
    Post a message to a Slack channel.

    Args:
        slack_token: Slack Bot OAuth token
        channel: Channel ID to post to
        message: Message text
        timeout: Request timeout in seconds

    Returns:
        True if successful, False otherwise
    """
    try:
        _api_post(
            slack_token,
            "chat.postMessage",
            {"channel": channel, "text": message},
            timeout=timeout,
        )
    except SlackAPIError as e:
        logger.error(f"Failed to post message to {channel}: {e.error}")
        return False
    except Exception as e:
        logger.error(f"Error posting message: {e}")
        return False
    return True
