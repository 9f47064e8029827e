# src/taskwarlock/cli/main.py

"""
CLI entrypoint: logging, AppState, then the console REPL on an asyncio loop.

There is a single connector, so the loop's lifetime is the process lifetime:
/exit, EOF or Ctrl+C all end up in the `finally` below.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import level_from_name, setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    log_file = setup_logging(
        log_dir=settings.data_dir,
        console_level=level_from_name(settings.log_level),
    )
    logger.info("Starting %s (full log: %s)", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    try:
        asyncio.run(run_console_loop(state))
    except KeyboardInterrupt:
        # asyncio.run already cancelled the pending refreshes.
        print()
        logger.info("Interrupted.")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
