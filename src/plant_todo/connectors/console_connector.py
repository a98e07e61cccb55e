# src/plant_todo/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from datetime import datetime
from typing import TYPE_CHECKING

from ..cli.commands import registry as command_registry

if TYPE_CHECKING:
    from ..cli.bootstrap import AppContext

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


async def _read_line(prompt: str) -> str:
    """input() without blocking the loop; a pending read never holds up interpreter exit."""
    loop = asyncio.get_running_loop()
    fut: asyncio.Future[str] = loop.create_future()

    def _resolve(result: str | None, exc: BaseException | None) -> None:
        if fut.done():
            return
        if exc is not None:
            fut.set_exception(exc)
        else:
            fut.set_result(result or "")

    def _reader() -> None:
        try:
            line = input(prompt)
        except (EOFError, OSError) as e:
            loop.call_soon_threadsafe(_resolve, None, e)
            return
        loop.call_soon_threadsafe(_resolve, line, None)

    threading.Thread(target=_reader, name="console-input", daemon=True).start()
    return await fut


async def run_console_loop(ctx: AppContext) -> None:
    """
    Interactive REPL on the event loop.

    input() runs in a daemon thread so the sync, scheduler and survival loops
    keep ticking while the prompt waits.
    """
    logger.info("Console connector started (sync=%s).", ctx.sync is not None)
    _print_ts("[CONSOLE] Use /help for commands, plain text adds a todo. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (e.g., uploads)
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = (await _read_line(">>> ")).strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
        except (EOFError, OSError):
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        # Plain text is shorthand for /add.
        line = user_input if user_input.startswith("/") else f"/add {user_input}"

        try:
            response = await command_registry.handle(ctx, line, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is not None:
            print(f"[{_ts_local()}] {response}\n")

    logger.info("Console connector finished.")
