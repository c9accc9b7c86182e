"""Command line entry point: python -m demobot [--no-store] [--do-reply] [--use-pairing-code]"""

import asyncio
import logging
import sys

from .config import ConfigurationError, Settings, configure_logging
from .telegram import DemoBot, SessionState

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        settings = Settings.from_env(argv)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_file)
    logger.info(
        f"Starting demo bot (store={settings.use_store}, replies={settings.do_reply}, "
        f"pairing_code={settings.use_pairing_code})"
    )

    bot = DemoBot(settings)
    try:
        final_state = asyncio.run(bot.run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 0

    return 0 if final_state in (SessionState.STOPPED, SessionState.CLOSED_TERMINAL) else 1


if __name__ == "__main__":
    sys.exit(main())
