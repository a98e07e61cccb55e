# tests/conftest.py

from __future__ import annotations

import random
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from plant_todo.core.sanitize import default_state
from plant_todo.core.store import StateStore
from plant_todo.core.viewport import Viewport

from .fakes import FakeClock, FakeRemoteStore

# A Monday.
MONDAY_0901 = datetime(2026, 10, 19, 9, 1)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(MONDAY_0901)


@pytest.fixture()
def store(clock: FakeClock) -> StateStore:
    return StateStore(default_state(now_ms=clock.now_ms()), clock)


@pytest.fixture()
def viewport() -> Viewport:
    return Viewport(1280, 800)


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture()
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with create_app_context().

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic (sync off by default).
    """
    return SimpleNamespace(
        app_name="plant-todo-test",
        log_level="DEBUG",
        # Remote store
        api_base_url="http://remote.test",
        profile_id="default",
        http_timeout_seconds=1.0,
        sync_enabled=False,
        # Paths (tmp per test run)
        data_dir=tmp_path,
        state_path=tmp_path / "state.json",
        # Timing
        sync_interval_seconds=60.0,
        push_debounce_seconds=0.01,
        pull_cooldown_seconds=5.0,
        scheduler_interval_seconds=60.0,
        survival_interval_seconds=60.0,
        conversion_grace_seconds=0.0,
        # Viewport
        viewport_width=1280,
        viewport_height=800,
        console_enabled=False,
    )
