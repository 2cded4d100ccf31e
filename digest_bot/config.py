"""
Bot configuration, read from the process environment.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from .ai import OPENAI_BASE_URL


@dataclass
class BotConfig:
    """Configuration for the bot.

    Required:
        slack_bot_token: Slack bot OAuth token (xoxb-...)
        slack_app_token: Slack app-level token for Socket Mode (xapp-...)

    AI options:
        openai_api_key: Completion API key. Not checked here; a bad or empty
            key surfaces as an authentication error from the API.
        openai_base_url: Any OpenAI-compatible endpoint
        openai_timeout: Request timeout in seconds

    Optional:
        bot_name / version: Shown in status and diagnostic messages
        status_channel: Slack channel ID for online/shutdown messages
        webhook_logs_url: Webhook that receives ERROR log records
        log_level: Root log level name
        diagnostic_commands: Mention texts answered with diagnostics
    """

    slack_bot_token: str
    slack_app_token: str
    openai_api_key: str = ""
    openai_base_url: str = OPENAI_BASE_URL
    openai_timeout: float = 60.0
    bot_name: str = "Digest Bot"
    version: str = "1.0.0"
    status_channel: Optional[str] = None
    webhook_logs_url: Optional[str] = None
    log_level: str = "INFO"
    diagnostic_commands: List[str] = field(
        default_factory=lambda: ["status", "info", "diag", "diagnostics", "version", "health", "ping"]
    )


def load_config(environ: Mapping[str, str] = os.environ) -> BotConfig:
    """Build a BotConfig from environment variables.

    Raises:
        ValueError: Slack tokens missing, or a malformed optional value.
    """
    bot_token = environ.get("SLACK_BOT_TOKEN")
    app_token = environ.get("SLACK_APP_TOKEN")
    if not bot_token or not app_token:
        raise ValueError("Missing SLACK_BOT_TOKEN or SLACK_APP_TOKEN")

    webhook_url = environ.get("WEBHOOK_LOGS_URL") or None
    if webhook_url and not webhook_url.startswith(("http://", "https://")):
        raise ValueError("WEBHOOK_LOGS_URL must be an http(s) URL")

    timeout = environ.get("OPENAI_TIMEOUT", "60")
    try:
        openai_timeout = float(timeout)
    except ValueError:
        raise ValueError(f"OPENAI_TIMEOUT must be a number of seconds, got {timeout!r}") from None

    return BotConfig(
        slack_bot_token=bot_token,
        slack_app_token=app_token,
        openai_api_key=environ.get("OPENAI_API_KEY", ""),
        openai_base_url=environ.get("OPENAI_BASE_URL") or OPENAI_BASE_URL,
        openai_timeout=openai_timeout,
        bot_name=environ.get("BOT_NAME") or "Digest Bot",
        version=environ.get("BOT_VERSION") or "1.0.0",
        status_channel=environ.get("STATUS_CHANNEL") or None,
        webhook_logs_url=webhook_url,
        log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
    )
