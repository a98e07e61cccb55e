# src/plant_todo/core/viewport.py

"""
Declutter / position repair for notes.

Each Todo keeps a desktop pair and a mobile pair. Out-of-bound pairs (or all
pairs on a manual "organize") are re-laid out as a staggered cascade: the k-th
repositioned note goes to base + k * step, clamped to the viewport, so repaired
notes tile instead of piling onto one point.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from .models import AppState, Placement, Point, Todo, ViewMode
from .store import StateStore

logger = logging.getLogger(__name__)

NOTE_WIDTH = 256
NOTE_HEIGHT = 200

DESKTOP_MIN_Y = 20
MOBILE_MIN_Y = 50

# (base, step, edge inset) of the cascade per mode.
DESKTOP_BASE = Point(40, 100)
DESKTOP_STEP = Point(20, 50)
MOBILE_BASE = Point(20, 80)
MOBILE_STEP = Point(10, 55)
# Mobile keeps clear of the bottom toolbar and the plant.
MOBILE_BOTTOM_RESERVE = 180


@dataclass(frozen=True, slots=True)
class Viewport:
    width: int
    height: int

    @property
    def mode(self) -> ViewMode:
        return ViewMode.for_width(self.width)

    @property
    def max_x(self) -> float:
        return self.width - NOTE_WIDTH

    @property
    def max_y(self) -> float:
        return self.height - NOTE_HEIGHT


def desktop_in_bounds(point: Point, viewport: Viewport) -> bool:
    return 0 <= point.x <= viewport.max_x and DESKTOP_MIN_Y <= point.y <= viewport.max_y


def mobile_in_bounds(point: Point | None, viewport: Viewport) -> bool:
    if point is None:
        return False
    return 0 <= point.x <= viewport.max_x and MOBILE_MIN_Y <= point.y <= viewport.max_y


def _clamp(value: float, low: float, high: float) -> float:
    # low wins when the viewport is too small for the range to exist
    return max(low, min(value, high))


def stagger_desktop(k: int, viewport: Viewport) -> Point:
    return Point(
        _clamp(DESKTOP_BASE.x + k * DESKTOP_STEP.x, DESKTOP_BASE.x, viewport.max_x - 20),
        _clamp(DESKTOP_BASE.y + k * DESKTOP_STEP.y, DESKTOP_BASE.y, viewport.max_y - 20),
    )


def stagger_mobile(k: int, viewport: Viewport) -> Point:
    return Point(
        _clamp(MOBILE_BASE.x + k * MOBILE_STEP.x, MOBILE_BASE.x, viewport.max_x - 20),
        _clamp(
            MOBILE_BASE.y + k * MOBILE_STEP.y,
            MOBILE_BASE.y,
            viewport.max_y - MOBILE_BOTTOM_RESERVE,
        ),
    )


def reconcile_todos(
    todos: Iterable[Todo],
    viewport: Viewport,
    *,
    manual: bool = False,
) -> tuple[tuple[Todo, ...], int]:
    """
    Return (todos, moved_count).

    Desktop and mobile pairs are tested independently. A missing mobile pair only
    counts as invalid while the viewport is in mobile mode. With manual=True every
    pair of every note is re-laid out and counted.

    Otherwise a note only counts when its placement actually changed, so a second
    pass over the result reports 0.
    """
    out: list[Todo] = []
    k = 0
    moved = 0
    in_mobile = viewport.mode == ViewMode.MOBILE

    for todo in todos:
        placement = todo.placement
        desktop_bad = manual or not desktop_in_bounds(placement.desktop, viewport)
        if placement.mobile is None:
            mobile_bad = manual or in_mobile
        else:
            mobile_bad = manual or not mobile_in_bounds(placement.mobile, viewport)

        if not (desktop_bad or mobile_bad):
            out.append(todo)
            continue

        relaid = Placement(
            desktop=stagger_desktop(k, viewport) if desktop_bad else placement.desktop,
            mobile=stagger_mobile(k, viewport) if mobile_bad else placement.mobile,
        )
        k += 1
        if relaid == placement and not manual:
            out.append(todo)
            continue
        out.append(replace(todo, placement=relaid))
        moved += 1

    return tuple(out), moved


class ViewportReconciler:
    """Keeps every note inside the current viewport; re-runs when the mode flips."""

    def __init__(self, store: StateStore, viewport: Viewport) -> None:
        self._store = store
        self._viewport = viewport

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def mode(self) -> ViewMode:
        return self._viewport.mode

    def run(self, *, manual: bool = False) -> int:
        """Repair positions; returns how many notes were moved."""
        moved = 0

        def _mutate(state: AppState) -> AppState | None:
            nonlocal moved
            todos, moved = reconcile_todos(state.todos, self._viewport, manual=manual)
            if moved == 0 and not manual:
                return None
            return replace(state, todos=todos)

        self._store.update(_mutate)
        if moved:
            logger.info("Repositioned %d note(s) (mode=%s manual=%s)", moved, self.mode.value, manual)
        return moved

    def set_viewport(self, viewport: Viewport) -> int:
        previous_mode = self._viewport.mode
        self._viewport = viewport
        if viewport.mode != previous_mode:
            logger.info("View mode %s -> %s", previous_mode.value, viewport.mode.value)
            return self.run()
        return 0
