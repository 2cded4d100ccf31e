"""
BotRunner — Core bot orchestrator.

The runner owns:
- The completion transport and client (built once, shared read-only)
- Mention replies (diagnostics, usage help)
- Bot configuration

The adapter (e.g., SlackAdapter) owns the human interface.
"""

import asyncio
import logging
import time
from typing import Optional

from .ai import OpenAIClient
from .commands import USAGE
from .completions import CompletionClient
from .config import BotConfig

logger = logging.getLogger(__name__)


class BotRunner:
    """
    Core bot orchestrator.

        config = load_config()
        BotRunner(config=config).start()

    Tests and embedders can inject the adapter and the completion client:

        BotRunner(config=config, adapter=HeadlessAdapter(), completions=stub).start()
    """

    def __init__(
        self,
        config: BotConfig,
        adapter=None,
        completions: Optional[CompletionClient] = None,
    ):
        self.config = config
        self._start_time = 0.0

        if completions is not None:
            self.transport = None
            self.completions = completions
        else:
            self.transport = OpenAIClient(
                api_key=config.openai_api_key,
                base_url=config.openai_base_url,
                timeout=config.openai_timeout,
            )
            self.completions = CompletionClient(self.transport)

        # Lazy import keeps slack_bolt out of the picture for headless use
        if adapter is not None:
            self.adapter = adapter
        else:
            from .slack_adapter import SlackAdapter

            self.adapter = SlackAdapter(
                bot_token=config.slack_bot_token,
                app_token=config.slack_app_token,
            )

    def handle_mention(self, user_text: str) -> str:
        """Reply to an @mention: diagnostics for diagnostic words, usage help otherwise."""
        if user_text.lower() in self.config.diagnostic_commands:
            return self._get_diagnostic_info()
        return f"Hi! I'm {self.config.bot_name}.\n\n{USAGE}"

    def _get_diagnostic_info(self) -> str:
        """Generate diagnostic information."""
        uptime_seconds = int(time.time() - self._start_time) if self._start_time else 0
        hours, remainder = divmod(uptime_seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        uptime_str = f"{hours}h {minutes}m {seconds}s"

        return f"""*{self.config.bot_name} Diagnostics*

:robot_face: *Version:* {self.config.version}
:clock1: *Uptime:* {uptime_str}
:brain: *API:* {self.config.openai_base_url}
"""

    async def run(self, **adapter_kwargs):
        """Run the adapter until it stops, then release the HTTP client."""
        self._start_time = time.time()
        logger.info(f"Starting {self.config.bot_name} v{self.config.version}...")
        try:
            await self.adapter.start(self, **adapter_kwargs)
        finally:
            if self.transport is not None:
                await self.transport.aclose()

    def start(self, **adapter_kwargs):
        """Start the bot on a fresh event loop.

        Args:
            **adapter_kwargs: Passed to adapter.start() (e.g., register_signals=False).
        """
        asyncio.run(self.run(**adapter_kwargs))
