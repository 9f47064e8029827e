# src/taskwarlock/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.errors import TaskwarlockError
from ..core.state import AppState
from ..tasks.task_cache import ALL_KEYS, TASKS_KEY

logger = logging.getLogger(__name__)

_EOF = None


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> threading.Thread:
    """
    Read stdin lines in a daemon thread and hand them to the event loop.

    input() blocks, so it cannot run on the loop; a daemon thread does not keep
    the process alive after the loop exits.
    """

    def _reader() -> None:
        while True:
            try:
                line = input()
            except (EOFError, KeyboardInterrupt):
                loop.call_soon_threadsafe(queue.put_nowait, _EOF)
                return
            loop.call_soon_threadsafe(queue.put_nowait, line)

    thread = threading.Thread(target=_reader, name="stdin-reader", daemon=True)
    thread.start()
    return thread


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /list to see tasks, /help for commands, /exit to quit.")

    # Initial load; failures are reported but the console still starts.
    await state.cache.invalidate(*ALL_KEYS)
    err = state.cache.last_error(TASKS_KEY)
    if err is not None:
        _print_ts(f"[WARN] Could not load tasks: {err}")
    else:
        count = len(state.cache.get_data(TASKS_KEY) or ())
        _print_ts(f"Loaded {count} task(s).")

    queue: asyncio.Queue[str | None] = asyncio.Queue()
    _start_stdin_reader(asyncio.get_running_loop(), queue)

    def emit(text: str) -> None:
        # Immediate feedback (optimistic predictions, long operations).
        _print_ts(text)

    while True:
        if sys.stdout.isatty():
            print(">>> ", end="", flush=True)
        line = await queue.get()
        if line is _EOF:
            logger.info("Console EOF received, exiting.")
            break

        user_input = line.strip()
        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Use /help to list them.")
            continue

        try:
            reply = await command_registry.handle(state, user_input, emit=emit)
        except TaskwarlockError as e:
            logger.info("Command failed: %s", e)
            reply = f"Failed: {e}"
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    # Leave no refresh running after the loop is gone.
    for key in ALL_KEYS:
        await state.cache.cancel(key)
