# src/plant_todo/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No remote endpoint required at import time (sync can be disabled).
- Timing knobs for sync/scheduler loops live here, not in the engines.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "PLANT"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Remote store ----
    api_base_url: str
    profile_id: str
    http_timeout_seconds: float
    sync_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    state_path: Path

    # ---- Loop timing ----
    sync_interval_seconds: float
    push_debounce_seconds: float
    pull_cooldown_seconds: float
    scheduler_interval_seconds: float
    survival_interval_seconds: float
    conversion_grace_seconds: float

    # ---- Viewport (headless client) ----
    viewport_width: int
    viewport_height: int

    # ---- Connector flags ----
    console_enabled: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "plant-todo") or "plant-todo"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        api_base_url = _env(_k("API_BASE_URL"), "http://localhost:3000").strip()
        profile_id = _env(_k("PROFILE_ID"), "default").strip() or "default"
        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), 10.0)
        sync_enabled = _env_bool(_k("SYNC_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/plant_todo"))
        state_path = _env_path(_k("STATE_PATH"), data_dir / "plant_todo_app_state_v3.json")

        # Cooldown must stay above the push debounce so a local edit lands before the next pull.
        sync_interval_seconds = _env_float(_k("SYNC_INTERVAL_SECONDS"), 15.0)
        push_debounce_seconds = _env_float(_k("PUSH_DEBOUNCE_SECONDS"), 2.0)
        pull_cooldown_seconds = _env_float(_k("PULL_COOLDOWN_SECONDS"), 5.0)
        scheduler_interval_seconds = _env_float(_k("SCHEDULER_INTERVAL_SECONDS"), 60.0)
        survival_interval_seconds = _env_float(_k("SURVIVAL_INTERVAL_SECONDS"), 10.0)
        conversion_grace_seconds = _env_float(_k("CONVERSION_GRACE_SECONDS"), 1.5)

        viewport_width = _env_int(_k("VIEWPORT_WIDTH"), 1280)
        viewport_height = _env_int(_k("VIEWPORT_HEIGHT"), 800)

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            api_base_url=api_base_url,
            profile_id=profile_id,
            http_timeout_seconds=http_timeout_seconds,
            sync_enabled=sync_enabled,
            data_dir=data_dir,
            state_path=state_path,
            sync_interval_seconds=sync_interval_seconds,
            push_debounce_seconds=push_debounce_seconds,
            pull_cooldown_seconds=pull_cooldown_seconds,
            scheduler_interval_seconds=scheduler_interval_seconds,
            survival_interval_seconds=survival_interval_seconds,
            conversion_grace_seconds=conversion_grace_seconds,
            viewport_width=viewport_width,
            viewport_height=viewport_height,
            console_enabled=console_enabled,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
