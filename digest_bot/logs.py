"""
Logging setup - console output plus optional webhook delivery of errors.

Webhook posts run on a QueueListener thread, so a slow webhook never blocks
the event loop.
"""

import logging
import queue
from logging.handlers import QueueHandler, QueueListener
from typing import Optional

import httpx

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class WebhookLogHandler(logging.Handler):
    """Posts log records to a Slack-style incoming webhook as {"text": ...}."""

    def __init__(self, url: str, level: int = logging.ERROR, timeout: float = 5.0):
        super().__init__(level)
        self.url = url
        self.timeout = timeout

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = self.format(record)
            httpx.post(self.url, json={"text": f"```{text[:3500]}```"}, timeout=self.timeout)
        except Exception:
            self.handleError(record)


def setup_logging(level: str = "INFO", webhook_url: Optional[str] = None) -> Optional[QueueListener]:
    """Configure the root logger once at startup.

    Returns the started webhook listener, if any. Stop it on shutdown to
    flush queued records.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    # httpx logs every request at INFO, including Slack API polling.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if not webhook_url:
        return None

    records: queue.Queue = queue.Queue(-1)
    # The queue handler formats the record; the webhook handler posts it as-is.
    queue_handler = QueueHandler(records)
    queue_handler.setLevel(logging.ERROR)
    queue_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(queue_handler)

    listener = QueueListener(records, WebhookLogHandler(webhook_url), respect_handler_level=True)
    listener.start()
    return listener
