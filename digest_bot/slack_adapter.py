"""
SlackAdapter — Slack interface for the bot.

Handles the Socket Mode connection, slash command and event registration,
and status posting. Commands call the runner's completion client.
"""

import asyncio
import logging
import os
import signal
from typing import Optional

from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp

from .commands import CommandHandlers
from .events import READY_EVENT, EventData, EventRegistry
from .utils import post_status_message, strip_mentions

logger = logging.getLogger(__name__)


class SlackAdapter:
    """Slack Socket Mode adapter. Routes commands and events for a BotRunner."""

    def __init__(
        self,
        bot_token: Optional[str] = None,
        app_token: Optional[str] = None,
    ):
        self.bot_token = bot_token or os.environ.get("SLACK_BOT_TOKEN")
        self.app_token = app_token or os.environ.get("SLACK_APP_TOKEN")

        if not self.bot_token or not self.app_token:
            raise ValueError("Missing SLACK_BOT_TOKEN or SLACK_APP_TOKEN")

        self.runner = None
        self.app = None
        self.events = EventRegistry(on_error=self._on_event_error)
        self._stop = asyncio.Event()
        self._register_events()

    async def start(self, runner, register_signals: bool = True):
        """Connect via Socket Mode and serve until stop() or SIGINT/SIGTERM."""
        self.runner = runner
        self.app = AsyncApp(token=self.bot_token)
        CommandHandlers(runner.completions, self.bot_token).register(self.app)
        self.events.attach(self.app)

        if register_signals:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self.stop)

        handler = AsyncSocketModeHandler(self.app, self.app_token)
        await handler.connect_async()

        await self._post_status(
            f":white_check_mark: {runner.config.bot_name} v{runner.config.version} is online!"
        )
        await self.events.dispatch(READY_EVENT, adapter=self)

        await self._stop.wait()

        logger.info("Shutdown signal received...")
        await self._post_status(
            f":warning: {runner.config.bot_name} v{runner.config.version} is shutting down..."
        )
        await handler.close_async()

    def stop(self):
        self._stop.set()

    def _register_events(self):
        """Register event handlers on the registry."""

        @self.events.on("app_mention", tags=["public"])
        async def handle_mention(event, say, client):
            await self._handle_mention(event, say)

        @self.events.on(READY_EVENT, once=True)
        async def log_ready(adapter):
            logger.info(f"{self.runner.config.bot_name} is ready")

    async def _handle_mention(self, event, say):
        """Answer @mentions with diagnostics or usage help, in thread."""
        user_message = strip_mentions(event.get("text", ""))
        thread_ts = event.get("thread_ts") or event.get("ts")
        await say(self.runner.handle_mention(user_message), thread_ts=thread_ts)

    def _on_event_error(self, error: Exception, data: EventData):
        logger.error(
            f"Error in {data.handler} handler for {data.name}: {error}",
            exc_info=error,
        )

    async def _post_status(self, message: str):
        """Post to status channel if configured."""
        if self.runner and self.runner.config.status_channel:
            await post_status_message(
                self.bot_token, self.runner.config.status_channel, message
            )
