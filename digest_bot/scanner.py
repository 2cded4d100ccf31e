"""
Channel scanning utilities for building AI-ready transcripts.

Fetches channel history with pagination, resolves author names, and
formats human messages into "Name: text" lines, oldest first.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

import httpx

from .utils import SLACK_API_URL, get_user_names, is_human_message

logger = logging.getLogger(__name__)


async def get_channel_history(
    slack_token: str,
    channel: str,
    oldest: Optional[str] = None,
    limit: int = 100,
    timeout: float = 10.0,
) -> List[Dict]:
    """
    Fetch channel message history from Slack with cursor pagination.

    Args:
        slack_token: Slack Bot OAuth token
        channel: Channel ID
        oldest: Only messages after this Unix timestamp
        limit: Max messages to fetch across all pages
        timeout: Request timeout in seconds

    Returns:
        List of Slack message objects, newest first (Slack's order)
    """
    messages: List[Dict] = []
    cursor = None

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            while len(messages) < limit:
                params = {
                    "channel": channel,
                    "limit": min(200, limit - len(messages)),
                }
                if oldest:
                    params["oldest"] = oldest
                if cursor:
                    params["cursor"] = cursor

                response = await client.get(
                    f"{SLACK_API_URL}/conversations.history",
                    headers={"Authorization": f"Bearer {slack_token}"},
                    params=params,
                )
                data = response.json()

                if not data.get("ok"):
                    logger.warning(f"Slack API error in conversations.history: {data.get('error')}")
                    return messages

                messages.extend(data.get("messages", []))

                cursor = data.get("response_metadata", {}).get("next_cursor")
                if not cursor:
                    break

    except httpx.TimeoutException:
        logger.error("Timeout fetching channel history")
    except Exception as e:
        logger.error(f"Error fetching channel history: {e}")

    logger.debug(f"Got {len(messages)} messages from channel {channel}")
    return messages[:limit]


def format_timestamp(ts: str) -> str:
    """Slack ts -> "10/19/2026, 3:04:05 PM" in local time."""
    when = datetime.fromtimestamp(float(ts))
    hour = when.hour % 12 or 12
    return f"{when.month}/{when.day}/{when.year}, {hour}:{when:%M:%S} {when:%p}"


def format_transcript(
    messages: List[Dict],
    names: Dict[str, str],
    with_timestamps: bool = False,
) -> List[str]:
    """
    Convert Slack messages to transcript lines for the completion client.

    Args:
        messages: Raw Slack messages in any order
        names: User ID -> display name
        with_timestamps: Prefix each line with its local date and time

    Returns:
        "Name: text" lines for human messages, oldest first
    """
    human = [m for m in messages if is_human_message(m)]
    human.sort(key=lambda m: float(m.get("ts", 0)))

    lines = []
    for msg in human:
        user_id = msg.get("user", "")
        author = names.get(user_id, user_id or "unknown")
        line = f"{author}: {msg['text'].strip()}"
        if with_timestamps and msg.get("ts"):
            line = f"[{format_timestamp(msg['ts'])}] {line}"
        lines.append(line)
    return lines


async def get_channel_transcript(
    slack_token: str,
    channel: str,
    limit: int = 100,
    oldest: Optional[str] = None,
    with_timestamps: bool = False,
) -> List[str]:
    """Fetch recent history and return its human messages as transcript lines."""
    messages = await get_channel_history(slack_token, channel, oldest=oldest, limit=limit)
    human = [m for m in messages if is_human_message(m)]
    if not human:
        return []

    names = await get_user_names(slack_token, [m["user"] for m in human if m.get("user")])
    return format_transcript(human, names, with_timestamps=with_timestamps)
