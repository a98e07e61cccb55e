# src/plant_todo/core/actions.py

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from .models import (
    BASE_Z_INDEX,
    AppSettings,
    AppState,
    GameRuleError,
    Placement,
    Point,
    ScreenEffect,
    SubTask,
    Todo,
    ViewMode,
    new_id,
)
from .store import StateStore
from .viewport import Viewport

logger = logging.getLogger(__name__)

SPAWN_PADDING = 100
SPAWN_MARGIN = 300
MOBILE_SPAWN = Point(20, 80)
MOBILE_SPAWN_STEP = 45


def random_desktop_point(viewport: Viewport, rng: random.Random | None = None) -> Point:
    """Random spot inside the padded safe rectangle of the viewport."""
    r = rng or random
    span_x = max(0, viewport.width - SPAWN_MARGIN - SPAWN_PADDING)
    span_y = max(0, viewport.height - SPAWN_MARGIN - SPAWN_PADDING)
    return Point(
        r.random() * span_x + SPAWN_PADDING / 2,
        r.random() * span_y + SPAWN_PADDING / 2,
    )


def make_subtasks(texts: Sequence[str]) -> tuple[SubTask, ...]:
    return tuple(SubTask(id=new_id(), text=t, completed=False) for t in texts if t and t.strip())


def _replace_todo(state: AppState, todo_id: str, fn) -> AppState | None:
    changed = False
    todos = []
    for t in state.todos:
        if t.id == todo_id:
            nt = fn(t)
            if nt is not None and nt != t:
                changed = True
                t = nt
        todos.append(t)
    if not changed:
        return None
    return replace(state, todos=tuple(todos))


def add_todo(
    store: StateStore,
    *,
    title: str,
    sub_tasks: Sequence[str] = (),
    viewport: Viewport,
    now_ms: int,
    rng: random.Random | None = None,
) -> Todo:
    if not title or not title.strip():
        raise GameRuleError("Todo title must not be empty.")
    r = rng or random

    def _mutate(state: AppState) -> AppState:
        n = len(state.todos)
        todo = Todo(
            id=new_id(),
            title=title.strip(),
            sub_tasks=make_subtasks(sub_tasks),
            created_at=now_ms,
            placement=Placement(
                desktop=random_desktop_point(viewport, r),
                mobile=Point(MOBILE_SPAWN.x, MOBILE_SPAWN.y + n * MOBILE_SPAWN_STEP),
            ),
            z_index=n + BASE_Z_INDEX,
            color=r.choice(state.settings.note_colors),
        )
        return replace(state, todos=(*state.todos, todo))

    # The new note is always appended last.
    created = store.update(_mutate).todos[-1]
    logger.info("Added todo id=%s title=%r", created.id, created.title)
    return created


def update_todo(
    store: StateStore,
    todo_id: str,
    *,
    title: str | None = None,
    sub_tasks: Sequence[SubTask] | None = None,
) -> bool:
    """Edit title and/or subtasks. Placement is left alone."""
    if title is not None and not title.strip():
        raise GameRuleError("Todo title must not be empty.")

    def _edit(t: Todo) -> Todo:
        return replace(
            t,
            title=t.title if title is None else title.strip(),
            sub_tasks=t.sub_tasks if sub_tasks is None else tuple(sub_tasks),
        )

    before = store.state
    return store.update(lambda s: _replace_todo(s, todo_id, _edit)) is not before


def move_todo(store: StateStore, todo_id: str, point: Point, mode: ViewMode) -> bool:
    """Drag result: only the pair of the active mode changes."""
    before = store.state
    after = store.update(
        lambda s: _replace_todo(s, todo_id, lambda t: replace(t, placement=t.placement.with_point(mode, point)))
    )
    return after is not before


def toggle_subtask(store: StateStore, todo_id: str, subtask_id: str) -> Todo | None:
    def _toggle(t: Todo) -> Todo | None:
        subs = tuple(
            replace(s, completed=not s.completed) if s.id == subtask_id else s for s in t.sub_tasks
        )
        return replace(t, sub_tasks=subs)

    store.update(lambda s: _replace_todo(s, todo_id, _toggle))
    return store.state.find_todo(todo_id)


def delete_todo(store: StateStore, todo_id: str) -> bool:
    def _mutate(state: AppState) -> AppState | None:
        todos = tuple(t for t in state.todos if t.id != todo_id)
        if len(todos) == len(state.todos):
            return None
        return replace(state, todos=todos)

    before = store.state
    deleted = store.update(_mutate) is not before
    if deleted:
        logger.info("Deleted todo id=%s", todo_id)
    return deleted


def focus_todo(store: StateStore, todo_id: str) -> None:
    """Bring a note to the front: zIndex = max(10, current max) + 1."""

    def _mutate(state: AppState) -> AppState | None:
        if state.find_todo(todo_id) is None:
            return None
        top = max([BASE_Z_INDEX, *(t.z_index for t in state.todos)]) + 1
        return _replace_todo(state, todo_id, lambda t: replace(t, z_index=top))

    store.update(_mutate)


_SETTINGS_FIELDS = frozenset(
    {"glass_effect_enabled", "glass_opacity", "custom_background", "screen_effect", "note_colors"}
)


def update_settings(store: StateStore, **changes: Any) -> AppSettings:
    unknown = set(changes) - _SETTINGS_FIELDS
    if unknown:
        raise GameRuleError(f"Unknown settings: {', '.join(sorted(unknown))}")
    if "screen_effect" in changes:
        changes["screen_effect"] = ScreenEffect.from_raw(str(changes["screen_effect"]))
    if "glass_opacity" in changes:
        changes["glass_opacity"] = min(1.0, max(0.0, float(changes["glass_opacity"])))
    if "note_colors" in changes:
        changes["note_colors"] = tuple(c for c in changes["note_colors"] if c)
        if not changes["note_colors"]:
            raise GameRuleError("Note palette needs at least one colour.")

    store.update(lambda s: replace(s, settings=replace(s.settings, **changes)))
    return store.state.settings
