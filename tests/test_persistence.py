# tests/test_persistence.py

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

from plant_todo.core import actions
from plant_todo.core.models import DAY_MS
from plant_todo.sync.persistence import LocalStateFile

NOW = 1_800_000_000_000


def test_missing_or_corrupt_file_gives_defaults(tmp_path: Path) -> None:
    local = LocalStateFile(tmp_path / "state.json")
    assert local.load(now_ms=NOW).death_time == NOW + 3 * DAY_MS

    local.path.write_text("{not json", "utf-8")
    state = local.load(now_ms=NOW)
    assert state.todos == ()
    assert state.points == 0


def test_listener_writes_every_change(tmp_path: Path, store, viewport, rng) -> None:
    local = LocalStateFile(tmp_path / "nested" / "state.json")
    store.subscribe(local)

    todo = actions.add_todo(store, title="Repot", sub_tasks=["soil"], viewport=viewport, now_ms=5, rng=rng)

    raw = json.loads(local.path.read_text("utf-8"))
    assert raw["todos"][0]["id"] == todo.id
    assert raw["todos"][0]["subTasks"][0]["text"] == "soil"

    reloaded = local.load(now_ms=NOW)
    assert reloaded == store.state


def test_save_and_clear(tmp_path: Path, store) -> None:
    local = LocalStateFile(tmp_path / "state.json")
    local.save(replace(store.state, points=17))

    assert local.load(now_ms=NOW).points == 17
    assert not local.path.with_suffix(".tmp").exists()

    local.clear()
    assert not local.path.exists()
    local.clear()
