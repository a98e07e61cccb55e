# src/plant_todo/core/gamification.py

"""
Survival-game effects of finishing todos.

Pure state transitions (apply_*) are kept separate from GamificationEngine,
which owns the timers (grace-delay removal, survival polling) and the
history upload.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace

from .history import history_record
from .models import (
    DAY_MS,
    NEW_PLANT_COST,
    PLANTS,
    POINTS_PER_TODO,
    STAGE_THRESHOLDS,
    SURVIVAL_DAYS_PER_POINT,
    AppState,
    GameRuleError,
    Todo,
)
from .ports import Clock, RemoteStore
from .store import StateStore

logger = logging.getLogger(__name__)

REWARD_MS = POINTS_PER_TODO * SURVIVAL_DAYS_PER_POINT * DAY_MS


def plant_stage(points: float) -> str:
    for threshold, stage in STAGE_THRESHOLDS:
        if points >= threshold:
            return stage
    return "seedling"


def apply_conversion(state: AppState, todo_id: str, now_ms: int) -> AppState | None:
    """Award the reward once per todo id; None if missing or already converted."""
    todo = state.find_todo(todo_id)
    if todo is None or todo.is_converted:
        return None
    # A dead plant restarts its countdown from the revival moment.
    base = now_ms if state.is_plant_dead else state.death_time
    return replace(
        state,
        points=state.points + POINTS_PER_TODO,
        death_time=base + REWARD_MS,
        is_plant_dead=False,
        todos=tuple(replace(t, is_converted=True) if t.id == todo_id else t for t in state.todos),
    )


def remove_converted(state: AppState, todo_id: str) -> AppState | None:
    todos = tuple(t for t in state.todos if not (t.id == todo_id and t.is_converted))
    if len(todos) == len(state.todos):
        return None
    return replace(state, todos=todos)


def apply_survival_check(state: AppState, now_ms: int) -> AppState | None:
    if state.is_plant_dead or now_ms <= state.death_time:
        return None
    return replace(state, is_plant_dead=True, points=0)


def apply_adoption(state: AppState, plant_id: str) -> AppState:
    if plant_id not in PLANTS:
        raise GameRuleError(f"Unknown plant: {plant_id}")
    if plant_id in state.adopted_plants:
        return replace(state, active_plant_id=plant_id)
    if state.points < NEW_PLANT_COST:
        raise GameRuleError(f"Not enough points: adopting needs {NEW_PLANT_COST}.")
    return replace(
        state,
        points=state.points - NEW_PLANT_COST,
        adopted_plants=(*state.adopted_plants, plant_id),
        active_plant_id=plant_id,
    )


def adopt_plant(store: StateStore, plant_id: str) -> AppState:
    return store.update(lambda s: apply_adoption(s, plant_id))


class GamificationEngine:
    def __init__(
        self,
        store: StateStore,
        clock: Clock,
        *,
        remote: RemoteStore | None = None,
        grace_seconds: float = 1.5,
        on_remote_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._remote = remote
        self._grace_seconds = max(0.0, float(grace_seconds))
        self._on_remote_error = on_remote_error
        self._removals: dict[str, asyncio.TimerHandle] = {}

    def set_remote_error_handler(self, handler: Callable[[Exception], None] | None) -> None:
        self._on_remote_error = handler

    @property
    def pending_removals(self) -> int:
        return len(self._removals)

    async def convert(self, todo_id: str) -> bool:
        """
        Consume a todo: points, survival extension, revival.

        Idempotent per id. The todo stays in the list (flagged converted) for the
        grace delay, then is removed. The history append happens after the state
        change and never fails the conversion.
        """
        now = self._clock.now_ms()
        converted: Todo | None = None

        def _mutate(state: AppState) -> AppState | None:
            nonlocal converted
            nxt = apply_conversion(state, todo_id, now)
            if nxt is not None:
                converted = state.find_todo(todo_id)
            return nxt

        self._store.update(_mutate)
        if converted is None:
            logger.debug("convert(%s) ignored: missing or already converted", todo_id)
            return False

        logger.info(
            "Converted todo id=%s points=%s death_time=%s",
            todo_id,
            self._store.state.points,
            self._store.state.death_time,
        )
        self._schedule_removal(todo_id)

        if self._remote is not None:
            try:
                await self._remote.append_history(history_record(converted, now))
            except Exception as exc:
                logger.warning("History append failed for todo id=%s: %s", todo_id, exc)
                if self._on_remote_error is not None:
                    self._on_remote_error(exc)
        return True

    def _schedule_removal(self, todo_id: str) -> None:
        if todo_id in self._removals:
            return
        if self._grace_seconds <= 0:
            self.expire(todo_id)
            return
        loop = asyncio.get_running_loop()
        self._removals[todo_id] = loop.call_later(self._grace_seconds, self.expire, todo_id)

    def expire(self, todo_id: str) -> bool:
        """Drop a converted todo from the active list (no-op if already gone)."""
        self._removals.pop(todo_id, None)
        before = self._store.state
        return self._store.update(lambda s: remove_converted(s, todo_id)) is not before

    def check_survival(self) -> bool:
        """One-way alive -> dead transition once the deadline has passed."""
        now = self._clock.now_ms()
        before = self._store.state
        died = self._store.update(lambda s: apply_survival_check(s, now)) is not before
        if died:
            logger.warning("The plant has died (death_time=%s).", before.death_time)
        return died

    async def run_survival_loop(self, *, interval_seconds: float = 10.0) -> None:
        """Check survival now and every interval_seconds. Cancel the task to stop."""
        sleep_s = max(0.5, float(interval_seconds))
        while True:
            try:
                self.check_survival()
            except Exception:
                logger.exception("Survival check failed")
            await asyncio.sleep(sleep_s)

    def close(self) -> None:
        """Cancel pending removals (shutdown)."""
        for handle in self._removals.values():
            handle.cancel()
        self._removals.clear()
