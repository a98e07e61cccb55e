# tests/test_viewport.py

from __future__ import annotations

from dataclasses import replace

from plant_todo.core.models import Placement, Point, Todo, ViewMode
from plant_todo.core.viewport import (
    Viewport,
    ViewportReconciler,
    desktop_in_bounds,
    mobile_in_bounds,
    reconcile_todos,
    stagger_desktop,
    stagger_mobile,
)

DESKTOP = Viewport(1280, 800)  # max_x=1024, max_y=600
PHONE = Viewport(400, 800)  # max_x=144, max_y=600


def _todo(todo_id: str, desktop: Point, mobile: Point | None = None) -> Todo:
    return Todo(
        id=todo_id,
        title=todo_id,
        sub_tasks=(),
        created_at=0,
        placement=Placement(desktop=desktop, mobile=mobile),
        z_index=10,
        color="#fff",
    )


def test_mode_follows_width() -> None:
    assert DESKTOP.mode == ViewMode.DESKTOP
    assert PHONE.mode == ViewMode.MOBILE
    assert Viewport(1023, 700).mode == ViewMode.MOBILE


def test_out_of_bounds_notes_are_cascaded_in_order() -> None:
    todos = [
        _todo("ok", Point(100, 100), Point(20, 80)),
        _todo("far", Point(5000, 100), Point(20, 80)),
        _todo("high", Point(100, 5), Point(20, 80)),
    ]

    out, moved = reconcile_todos(todos, DESKTOP)

    assert moved == 2
    assert out[0] == todos[0]
    assert out[1].placement.desktop == stagger_desktop(0, DESKTOP) == Point(40, 100)
    assert out[2].placement.desktop == stagger_desktop(1, DESKTOP) == Point(60, 150)
    # valid mobile pairs are kept
    assert out[1].placement.mobile == Point(20, 80)


def test_missing_mobile_pair_only_matters_in_mobile_mode() -> None:
    todos = [_todo("a", Point(100, 100))]

    out, moved = reconcile_todos(todos, DESKTOP)
    assert moved == 0
    assert out[0].placement.mobile is None

    out, moved = reconcile_todos(todos, PHONE)
    assert moved == 1
    assert out[0].placement.mobile == Point(20, 80)
    assert out[0].placement.desktop == Point(100, 100)


def test_stagger_is_clamped_to_viewport() -> None:
    far = stagger_mobile(50, PHONE)
    assert far.x == PHONE.max_x - 20
    assert far.y == PHONE.max_y - 180 == 420
    assert mobile_in_bounds(far, PHONE)

    tiny = Viewport(200, 150)
    p = stagger_desktop(3, tiny)
    # low bound wins when the range collapses
    assert p == Point(40, 100)


def test_manual_organize_moves_every_note() -> None:
    todos = [_todo("a", Point(100, 100), Point(20, 80)), _todo("b", Point(200, 200), Point(20, 140))]

    out, moved = reconcile_todos(todos, DESKTOP, manual=True)

    assert moved == 2
    assert [t.placement.desktop for t in out] == [Point(40, 100), Point(60, 150)]
    assert [t.placement.mobile for t in out] == [stagger_mobile(0, DESKTOP), stagger_mobile(1, DESKTOP)]


def test_cascade_on_a_phone_settles_after_one_pass() -> None:
    todos = [_todo(f"n{i}", Point(900, 700)) for i in range(12)]

    out, moved = reconcile_todos(todos, PHONE)
    assert moved == 12
    for t in out:
        assert desktop_in_bounds(t.placement.desktop, PHONE)
        assert mobile_in_bounds(t.placement.mobile, PHONE)

    again, moved = reconcile_todos(out, PHONE)
    assert moved == 0
    assert again == out


def test_unchanged_placement_is_not_counted() -> None:
    # a viewport too short for any in-bounds desktop cascade
    squat = Viewport(1280, 250)
    todos = [_todo("a", stagger_desktop(0, squat), Point(20, 50))]

    out, moved = reconcile_todos(todos, squat)

    assert moved == 0
    assert out == tuple(todos)


def test_reconciler_commits_only_when_something_moved(store) -> None:
    calls: list[bool] = []
    store.subscribe(lambda state, *, local: calls.append(local))
    reconciler = ViewportReconciler(store, DESKTOP)

    assert reconciler.run() == 0
    assert calls == []

    store.replace(replace(store.state, todos=(_todo("a", Point(100, 100)),)))
    calls.clear()

    # switching to mobile repairs the absent mobile pair
    assert reconciler.set_viewport(PHONE) == 1
    assert calls == [True]
    assert store.state.todos[0].placement.mobile == Point(20, 80)

    # same mode, no re-run
    assert reconciler.set_viewport(Viewport(500, 900)) == 0
    assert reconciler.viewport == Viewport(500, 900)
