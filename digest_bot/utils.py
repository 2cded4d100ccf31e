"""
Slack utilities - user lookup, message filtering, status posting.
"""

import logging
import re
from datetime import datetime
from typing import Dict, Iterable, Optional

import httpx

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"

# Subtypes that are not something a person said in the channel.
IGNORED_SUBTYPES = {
    "bot_message",
    "channel_join",
    "channel_leave",
    "channel_topic",
    "channel_purpose",
    "channel_name",
    "channel_archive",
    "pinned_item",
}

_MENTION = re.compile(r"<@[A-Z0-9]+>")


def strip_mentions(text: str) -> str:
    """Remove <@U123> user mentions from message text."""
    return _MENTION.sub("", text).strip()


def is_human_message(msg: Dict) -> bool:
    """True for non-empty messages written by a person."""
    if msg.get("bot_id") is not None:
        return False
    if msg.get("subtype") in IGNORED_SUBTYPES:
        return False
    return bool(msg.get("text", "").strip())


def start_of_day(now: Optional[datetime] = None) -> datetime:
    """Local midnight of the given (or current) day."""
    now = now or datetime.now()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


async def get_user_names(
    slack_token: str,
    user_ids: Iterable[str],
    timeout: float = 10.0,
) -> Dict[str, str]:
    """
    Resolve Slack user IDs to display names.

    Args:
        slack_token: Slack Bot OAuth token
        user_ids: User IDs to look up (duplicates are fetched once)
        timeout: Request timeout in seconds

    Returns:
        Mapping of user ID -> display name. IDs that cannot be resolved
        map to themselves.
    """
    names: Dict[str, str] = {}
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            for user_id in dict.fromkeys(user_ids):
                response = await client.get(
                    f"{SLACK_API_URL}/users.info",
                    headers={"Authorization": f"Bearer {slack_token}"},
                    params={"user": user_id},
                )
                data = response.json()
                if not data.get("ok"):
                    logger.warning(f"Slack API error in users.info: {data.get('error')}")
                    names[user_id] = user_id
                    continue

                user = data.get("user", {})
                profile = user.get("profile", {})
                names[user_id] = (
                    profile.get("display_name")
                    or profile.get("real_name")
                    or user.get("real_name")
                    or user.get("name")
                    or user_id
                )
    except httpx.TimeoutException:
        logger.error("Timeout resolving user names")
    except Exception as e:
        logger.error(f"Error resolving user names: {e}")

    return names


async def post_status_message(
    slack_token: str,
    channel: str,
    message: str,
    timeout: float = 10.0,
) -> bool:
    """
    Post a status message to a Slack channel.

    Args:
        slack_token: Slack Bot OAuth token
        channel: Channel ID to post to
        message: Message text
        timeout: Request timeout in seconds

    Returns:
        True if successful, False otherwise
    """
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(
                f"{SLACK_API_URL}/chat.postMessage",
                headers={
                    "Authorization": f"Bearer {slack_token}",
                    "Content-Type": "application/json",
                },
                json={"channel": channel, "text": message},
            )
            data = response.json()
            if not data.get("ok"):
                logger.error(f"Failed to post status: {data.get('error')}")
                return False
            return True
    except Exception as e:
        logger.error(f"Error posting status message: {e}")
        return False
