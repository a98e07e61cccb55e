# tests/test_bootstrap.py

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from plant_todo.cli.bootstrap import create_app_context, shutdown, start_background
from plant_todo.core.sanitize import sanitize_state
from plant_todo.core.viewport import desktop_in_bounds
from plant_todo.sync.persistence import LocalStateFile

from .test_commands import replace_ns

SNAPSHOT_PATH = "/api/sync/default"


def _seed_local_copy(settings, clock) -> None:
    # desktop x far beyond a 1280px viewport
    raw = {"todos": [{"id": "far", "title": "Far away", "x": 5000, "y": 100, "mx": 20, "my": 80}]}
    LocalStateFile(settings.state_path).save(sanitize_state(raw, now_ms=clock.now_ms()))


class _Server:
    def __init__(self, snapshot: dict | None) -> None:
        self.snapshot = snapshot
        self.calls: list[str] = []
        self.posted: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path != SNAPSHOT_PATH:
            return httpx.Response(404)
        self.calls.append(request.method)
        if request.method == "POST":
            self.posted.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})
        if self.snapshot is None:
            return httpx.Response(404)
        return httpx.Response(200, json=self.snapshot)


@pytest.mark.asyncio
async def test_startup_pull_runs_before_viewport_repair(settings, clock) -> None:
    _seed_local_copy(settings, clock)
    server = _Server({"todos": [{"id": "remote", "title": "From phone", "x": 100, "y": 100}]})
    ctx = create_app_context(
        settings=replace_ns(settings, sync_enabled=True),
        clock=clock,
        transport=httpx.MockTransport(server),
    )

    start_background(ctx)
    await asyncio.sleep(0.05)

    assert server.calls[0] == "GET"
    assert [t.id for t in ctx.store.state.todos] == ["remote"]
    # scheduler and survival loops are up once the pull is done
    assert len(ctx.tasks) == 2
    await shutdown(ctx)


@pytest.mark.asyncio
async def test_initial_push_carries_repaired_positions(settings, clock) -> None:
    _seed_local_copy(settings, clock)
    server = _Server(None)
    ctx = create_app_context(
        settings=replace_ns(settings, sync_enabled=True),
        clock=clock,
        transport=httpx.MockTransport(server),
    )

    start_background(ctx)
    await asyncio.sleep(0.05)

    assert server.calls[:2] == ["GET", "POST"]
    pushed = server.posted[0]["todos"][0]
    assert pushed["x"] == 40 and pushed["y"] == 100
    assert desktop_in_bounds(ctx.store.state.todos[0].placement.desktop, ctx.viewport)
    await shutdown(ctx)


@pytest.mark.asyncio
async def test_local_only_repairs_right_away(settings, clock) -> None:
    _seed_local_copy(settings, clock)
    ctx = create_app_context(settings=settings, clock=clock)

    start_background(ctx)

    assert ctx.sync is None
    assert ctx.store.state.todos[0].placement.desktop.x == 40
    assert len(ctx.tasks) == 2
    await shutdown(ctx)
