# src/plant_todo/tasks/task_scheduler.py

from __future__ import annotations

"""
Recurring task scheduler.

A small polling loop that, every tick:
- evaluates every recurrence rule against the wall clock,
- appends one Todo per rule that fires,
- stamps the rule's lastGenerated in the same state write.

The day guard inside rule evaluation is what keeps repeated ticks on the same
date from producing duplicates; the loop itself holds no state.
"""

import asyncio
import logging
import random
from collections.abc import Callable

from ..core.models import AppState
from ..core.ports import Clock
from ..core.store import StateStore
from ..core.viewport import Viewport
from .recurrence import Generation, generate_due_todos

logger = logging.getLogger(__name__)


class RecurringScheduler:
    def __init__(
        self,
        store: StateStore,
        clock: Clock,
        viewport: Callable[[], Viewport],
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._viewport = viewport
        self._rng = rng

    def tick(self) -> list[Generation]:
        """Run one evaluation pass; returns what was generated."""
        now = self._clock.now()
        generated: list[Generation] = []

        def _mutate(state: AppState) -> AppState | None:
            nonlocal generated
            nxt, generated = generate_due_todos(state, now, self._viewport(), rng=self._rng)
            return nxt if generated else None

        self._store.update(_mutate)

        for g in generated:
            logger.info("Rule %s generated todo id=%s title=%r", g.rule_id, g.todo.id, g.todo.title)
        return generated


async def run_recurring_scheduler(
    scheduler: RecurringScheduler,
    *,
    interval_seconds: float = 60.0,
) -> None:
    """
    Simple polling scheduler: tick now, then every interval_seconds.

    To stop the scheduler, cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))

    while True:
        try:
            scheduler.tick()
        except Exception:
            logger.exception("Recurring scheduler tick failed")

        await asyncio.sleep(sleep_s)
