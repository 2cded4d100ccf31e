"""
digest-bot: Slack bot that summarizes, recaps and analyzes channel history with an LLM.

Run the bot:
    from digest_bot import BotRunner, load_config

    BotRunner(config=load_config()).start()

Use the completion client on its own:
    from digest_bot import CompletionClient, OpenAIClient

    completions = CompletionClient(OpenAIClient(api_key))
    keywords = await completions.extract_keywords(text, max_keywords=5)
"""

from .ai import OpenAIClient
from .completions import (
    ChatCompletionOptions,
    CompletionClient,
    CompletionError,
    EmptyResponseError,
    MoodResult,
    SentimentResult,
    TaskDefaults,
)
from .config import BotConfig, load_config
from .events import EventHandler, EventRegistry
from .runner import BotRunner

__all__ = [
    "BotRunner",
    "BotConfig",
    "load_config",
    "OpenAIClient",
    "CompletionClient",
    "ChatCompletionOptions",
    "TaskDefaults",
    "SentimentResult",
    "MoodResult",
    "CompletionError",
    "EmptyResponseError",
    "EventRegistry",
    "EventHandler",
]
__version__ = "1.0.0"
