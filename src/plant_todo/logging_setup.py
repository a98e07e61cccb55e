# src/plant_todo/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "plant_todo.log"

# The sync loop logs a line per poll and per debounced push.
_CHATTY_PREFIXES = ("plant_todo.sync.",)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keeps the stderr stream readable under the console prompt.

    Sync pushes and pulls only reach the console at WARNING+ (the log file
    still has them). Other plant_todo records pass, so generated recurring todos
    and plant deaths stay visible. Everything else needs ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("plant_todo."):
            if name.startswith(_CHATTY_PREFIXES):
                return record.levelno >= logging.WARNING
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/plant_todo",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console on stderr (filtered) plus a full plant_todo.log next to the state copy.

    Called once from main() before the store is loaded. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Re-running main() in one process must not double every line.
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # One line per remote call is enough; the client logs its own failures.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return log_file
