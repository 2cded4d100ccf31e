"""Entry point: python -m digest_bot"""

import sys

from .config import load_config
from .logs import setup_logging
from .runner import BotRunner


def main():
    try:
        config = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    listener = setup_logging(config.log_level, config.webhook_logs_url)
    try:
        BotRunner(config=config).start()
    finally:
        if listener:
            listener.stop()


if __name__ == "__main__":
    main()
