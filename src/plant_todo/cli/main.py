# src/plant_todo/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the AppContext, then runs one asyncio loop:
- sync polling, recurring scheduler and survival check in background tasks,
- console REPL in the foreground (optional), otherwise wait for a signal.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_app_context, shutdown, start_background
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    ctx = create_app_context(settings=settings)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        # Some platforms (Windows) do not support loop signal handlers.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, _handle_signal, sig)

    try:
        start_background(ctx)
        if settings.console_enabled:
            console = asyncio.create_task(run_console_loop(ctx), name="console")
            stopper = asyncio.create_task(stop_main.wait(), name="stop-wait")
            done, pending = await asyncio.wait({console, stopper}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
        else:
            logger.info("Console disabled. Running background loops only. Press Ctrl+C to stop.")
            await stop_main.wait()
    finally:
        await shutdown(ctx)
        logger.info("Bye.")


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file %s)...", settings.app_name, log_file)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run(settings))


if __name__ == "__main__":
    main()
