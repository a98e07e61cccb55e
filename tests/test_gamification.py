# tests/test_gamification.py

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from plant_todo.core import actions
from plant_todo.core.gamification import (
    REWARD_MS,
    GamificationEngine,
    adopt_plant,
    apply_conversion,
    apply_survival_check,
    plant_stage,
)
from plant_todo.core.models import DAY_MS, NEW_PLANT_COST, GameRuleError


def _done_todo(store, viewport, rng, title="Water"):
    todo = actions.add_todo(store, title=title, sub_tasks=["do it"], viewport=viewport, now_ms=0, rng=rng)
    actions.toggle_subtask(store, todo.id, todo.sub_tasks[0].id)
    return store.state.find_todo(todo.id)


def test_reward_is_five_days_per_point() -> None:
    assert REWARD_MS == 5 * DAY_MS


def test_conversion_is_idempotent(store, clock, viewport, rng) -> None:
    todo = _done_todo(store, viewport, rng)
    start = store.state

    once = apply_conversion(start, todo.id, clock.now_ms())
    assert once is not None
    assert once.points == start.points + 1
    assert once.death_time == start.death_time + REWARD_MS
    assert once.find_todo(todo.id).is_converted

    assert apply_conversion(once, todo.id, clock.now_ms()) is None
    assert apply_conversion(once, "missing", clock.now_ms()) is None


def test_revival_counts_from_now(store, clock, viewport, rng) -> None:
    todo = _done_todo(store, viewport, rng)
    dead = replace(store.state, is_plant_dead=True, points=0, death_time=clock.now_ms() - 10 * DAY_MS)

    revived = apply_conversion(dead, todo.id, clock.now_ms())

    assert revived.is_plant_dead is False
    assert revived.death_time == clock.now_ms() + REWARD_MS


def test_survival_check_is_one_way(store, clock) -> None:
    state = replace(store.state, points=12, death_time=clock.now_ms())

    # not strictly past the deadline yet
    assert apply_survival_check(state, clock.now_ms()) is None

    dead = apply_survival_check(state, clock.now_ms() + 1)
    assert dead.is_plant_dead is True
    assert dead.points == 0
    assert apply_survival_check(dead, clock.now_ms() + DAY_MS) is None


def test_plant_stage_thresholds() -> None:
    assert [plant_stage(p) for p in (0, 1, 4, 5, 15, 29, 30)] == [
        "seedling",
        "sprout",
        "sprout",
        "young",
        "mature",
        "mature",
        "blooming",
    ]


def test_adoption_costs_points(store) -> None:
    with pytest.raises(GameRuleError):
        adopt_plant(store, "rose")
    with pytest.raises(GameRuleError):
        adopt_plant(store, "triffid")

    store.replace(replace(store.state, points=NEW_PLANT_COST + 5))
    state = adopt_plant(store, "rose")
    assert state.points == 5
    assert state.active_plant_id == "rose"
    assert state.adopted_plants == ("monstera", "rose")

    # switching back to an owned plant is free
    state = adopt_plant(store, "monstera")
    assert state.points == 5
    assert state.active_plant_id == "monstera"


@pytest.mark.asyncio
async def test_engine_convert_removes_after_grace_and_logs_history(store, clock, viewport, rng, remote) -> None:
    todo = _done_todo(store, viewport, rng)
    engine = GamificationEngine(store, clock, remote=remote, grace_seconds=0.01)

    assert await engine.convert(todo.id) is True
    assert await engine.convert(todo.id) is False

    # still visible (flagged) during the grace delay
    assert store.state.find_todo(todo.id).is_converted
    assert store.state.points == 1
    assert len(remote.history) == 1
    assert remote.history[0]["title"] == "Water"
    assert remote.history[0]["convertedAt"] == clock.now_ms()

    await asyncio.sleep(0.05)
    assert store.state.find_todo(todo.id) is None
    assert engine.pending_removals == 0
    assert not engine.expire(todo.id)


@pytest.mark.asyncio
async def test_history_failure_does_not_undo_conversion(store, clock, viewport, rng, remote) -> None:
    todo = _done_todo(store, viewport, rng)
    errors: list[Exception] = []
    remote.fail = True
    engine = GamificationEngine(store, clock, remote=remote, grace_seconds=0, on_remote_error=errors.append)

    assert await engine.convert(todo.id) is True

    assert store.state.points == 1
    assert store.state.find_todo(todo.id) is None
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_survival_loop_kills_expired_plant(store, clock) -> None:
    store.replace(replace(store.state, points=3, death_time=clock.now_ms() - 1))
    engine = GamificationEngine(store, clock)

    runner = asyncio.create_task(engine.run_survival_loop(interval_seconds=0.01))
    await asyncio.sleep(0.02)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert store.state.is_plant_dead is True
    assert store.state.points == 0
    assert engine.check_survival() is False


@pytest.mark.asyncio
async def test_close_cancels_pending_removals(store, clock, viewport, rng) -> None:
    todo = _done_todo(store, viewport, rng)
    engine = GamificationEngine(store, clock, grace_seconds=10)

    await engine.convert(todo.id)
    assert engine.pending_removals == 1
    engine.close()
    assert engine.pending_removals == 0
    assert store.state.find_todo(todo.id).is_converted
