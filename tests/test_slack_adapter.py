"""Tests for digest_bot.slack_adapter"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from digest_bot.events import EventData
from digest_bot.slack_adapter import SlackAdapter


def _runner(status_channel="C_STATUS"):
    runner = MagicMock()
    runner.config.bot_name = "Test Bot"
    runner.config.version = "1.0.0"
    runner.config.status_channel = status_channel
    return runner


class TestSlackAdapterInit:
    @patch.dict("os.environ", {"SLACK_BOT_TOKEN": "xoxb-test", "SLACK_APP_TOKEN": "xapp-test"})
    def test_init_with_env_vars(self):
        adapter = SlackAdapter()
        assert adapter.bot_token == "xoxb-test"
        assert adapter.app_token == "xapp-test"

    def test_init_with_explicit_tokens(self):
        adapter = SlackAdapter(bot_token="xoxb-explicit", app_token="xapp-explicit")
        assert adapter.bot_token == "xoxb-explicit"
        assert adapter.app_token == "xapp-explicit"

    @patch.dict("os.environ", {}, clear=True)
    def test_init_missing_tokens_raises(self):
        with pytest.raises(ValueError, match="Missing SLACK_BOT_TOKEN or SLACK_APP_TOKEN"):
            SlackAdapter()

    def test_registers_events(self):
        adapter = SlackAdapter(bot_token="xoxb-test", app_token="xapp-test")
        assert "handle_mention" in adapter.events.handlers["app_mention"]
        assert "log_ready" in adapter.events.handlers["ready"]


class TestSlackAdapterMention:
    def test_mention_replies_in_thread(self):
        adapter = SlackAdapter(bot_token="xoxb-test", app_token="xapp-test")
        adapter.runner = _runner()
        adapter.runner.handle_mention.return_value = "Diagnostics"
        say = AsyncMock()
        event = {"text": "<@U123BOT> status", "channel": "C123", "ts": "111.222"}

        asyncio.run(adapter._handle_mention(event, say))

        adapter.runner.handle_mention.assert_called_once_with("status")
        say.assert_awaited_once_with("Diagnostics", thread_ts="111.222")

    def test_mention_in_existing_thread(self):
        adapter = SlackAdapter(bot_token="xoxb-test", app_token="xapp-test")
        adapter.runner = _runner()
        adapter.runner.handle_mention.return_value = "Help"
        say = AsyncMock()
        event = {"text": "<@U123BOT>", "thread_ts": "100.1", "ts": "100.9"}

        asyncio.run(adapter._handle_mention(event, say))

        say.assert_awaited_once_with("Help", thread_ts="100.1")

    def test_mention_dispatched_through_registry(self):
        adapter = SlackAdapter(bot_token="xoxb-test", app_token="xapp-test")
        adapter.runner = _runner()
        adapter.runner.handle_mention.return_value = "Help"
        say = AsyncMock()

        asyncio.run(adapter.events.dispatch(
            "app_mention", event={"text": "<@U1> hi", "ts": "1.0"}, say=say, client=MagicMock()
        ))

        say.assert_awaited_once_with("Help", thread_ts="1.0")

    def test_event_errors_logged_not_raised(self, caplog):
        adapter = SlackAdapter(bot_token="xoxb-test", app_token="xapp-test")
        adapter.runner = _runner()
        adapter.runner.handle_mention.side_effect = RuntimeError("boom")

        asyncio.run(adapter.events.dispatch(
            "app_mention", event={"text": "hi", "ts": "1.0"}, say=AsyncMock(), client=MagicMock()
        ))

        assert any("handle_mention" in r.getMessage() for r in caplog.records)


class TestSlackAdapterStatus:
    def test_post_status_with_channel(self):
        adapter = SlackAdapter(bot_token="xoxb-test", app_token="xapp-test")
        adapter.runner = _runner("C_STATUS")

        with patch("digest_bot.slack_adapter.post_status_message", AsyncMock()) as mock_post:
            asyncio.run(adapter._post_status("Test message"))

        mock_post.assert_awaited_once_with("xoxb-test", "C_STATUS", "Test message")

    def test_post_status_without_channel(self):
        adapter = SlackAdapter(bot_token="xoxb-test", app_token="xapp-test")
        adapter.runner = _runner(None)

        with patch("digest_bot.slack_adapter.post_status_message", AsyncMock()) as mock_post:
            asyncio.run(adapter._post_status("Test message"))

        mock_post.assert_not_called()


class TestSlackAdapterStart:
    @patch("digest_bot.slack_adapter.post_status_message", new_callable=AsyncMock)
    @patch("digest_bot.slack_adapter.AsyncSocketModeHandler")
    @patch("digest_bot.slack_adapter.AsyncApp")
    def test_start_lifecycle(self, mock_app_class, mock_handler_class, mock_post):
        handler = mock_handler_class.return_value
        handler.connect_async = AsyncMock()
        handler.close_async = AsyncMock()
        app = mock_app_class.return_value

        adapter = SlackAdapter(bot_token="xoxb-test", app_token="xapp-test")
        adapter.stop()
        asyncio.run(adapter.start(_runner(), register_signals=False))

        mock_app_class.assert_called_once_with(token="xoxb-test")
        mock_handler_class.assert_called_once_with(app, "xapp-test")
        handler.connect_async.assert_awaited_once()
        handler.close_async.assert_awaited_once()

        commands = [c.args[0] for c in app.command.call_args_list]
        assert "/summarize" in commands and "/ask" in commands
        app.event.assert_called_once_with("app_mention")

        messages = [c.args[2] for c in mock_post.await_args_list]
        assert "is online" in messages[0]
        assert "shutting down" in messages[1]
        assert "log_ready" not in adapter.events.handlers["ready"]


def test_on_event_error_logs(caplog):
    adapter = SlackAdapter(bot_token="xoxb-test", app_token="xapp-test")

    adapter._on_event_error(RuntimeError("boom"), EventData(name="app_mention", handler="h", kwargs={}))

    assert "Error in h handler for app_mention: boom" in caplog.text
