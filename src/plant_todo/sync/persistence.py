# src/plant_todo/sync/persistence.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from ..core.models import AppState
from ..core.sanitize import default_state, sanitize_state, state_to_dict

logger = logging.getLogger(__name__)


class LocalStateFile:
    """
    Local persisted copy of the AppState (JSON file).

    Read once at startup as the seed before the first remote pull; rewritten on
    every state change. Usable directly as a StateStore listener.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, now_ms: int) -> AppState:
        if not self._path.exists():
            logger.info("No local state at %s; starting from defaults.", self._path)
            return default_state(now_ms=now_ms)
        try:
            raw = json.loads(self._path.read_text("utf-8"))
        except Exception:
            logger.exception("Failed to read local state from %s; starting from defaults.", self._path)
            return default_state(now_ms=now_ms)
        state = sanitize_state(raw, now_ms=now_ms)
        logger.info("Loaded local state: %d todos, %d rules from %s", len(state.todos), len(state.recurring_rules), self._path)
        return state

    def save(self, state: AppState) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(json.dumps(state_to_dict(state), ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, self._path)
        except Exception:
            logger.exception("Failed to save local state to %s", self._path)

    def clear(self) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._path.unlink()

    def __call__(self, state: AppState, *, local: bool) -> None:
        self.save(state)
