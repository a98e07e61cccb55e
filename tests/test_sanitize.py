# tests/test_sanitize.py

from __future__ import annotations

import json

import pytest

from plant_todo.core.models import (
    DAY_MS,
    DEFAULT_NOTE_COLORS,
    DEFAULT_PLANT_ID,
    Frequency,
    Point,
    ScreenEffect,
)
from plant_todo.core.sanitize import default_state, sanitize_state, serialize_state, state_to_dict

NOW = 1_800_000_000_000


@pytest.mark.parametrize("raw", [None, "garbage", 42, [], {"todos": "nope", "settings": 3}])
def test_garbage_becomes_defaults(raw) -> None:
    state = sanitize_state(raw, now_ms=NOW)

    assert state.todos == ()
    assert state.recurring_rules == ()
    assert state.points == 0
    assert state.active_plant_id == DEFAULT_PLANT_ID
    assert state.adopted_plants == (DEFAULT_PLANT_ID,)
    assert state.death_time == NOW + 3 * DAY_MS
    assert state.is_plant_dead is False
    assert state.settings.glass_effect_enabled is True
    assert state.settings.glass_opacity == 0.6
    assert state.settings.screen_effect == ScreenEffect.NONE
    assert state.settings.note_colors == DEFAULT_NOTE_COLORS


def test_fields_are_repaired_one_by_one() -> None:
    raw = {
        "points": True,  # bool is not a number
        "deathTime": 0,
        "activePlantId": "",
        "isPlantDead": 1,
        "adoptedPlants": ["rose", 7, "cactus"],
        "settings": {"glassEffectEnabled": False, "glassOpacity": float("nan"), "screenEffect": "sakura"},
        "todos": [
            "not a todo",
            {"title": "no id"},
            {
                "id": "t1",
                "title": "Water",
                "subTasks": [{"text": "fill can", "completed": True}, None, {"id": "s2", "text": "pour"}],
                "x": "10",
                "y": 30,
                "mx": 5,
                "zIndex": 12,
            },
        ],
    }

    state = sanitize_state(raw, now_ms=NOW)

    assert state.points == 0
    assert state.death_time == NOW + 3 * DAY_MS
    assert state.active_plant_id == DEFAULT_PLANT_ID
    assert state.is_plant_dead is True
    assert state.adopted_plants == ("rose", "cactus")
    assert state.settings.glass_effect_enabled is False
    assert state.settings.glass_opacity == 0.6
    assert state.settings.screen_effect == ScreenEffect.SAKURA

    assert [t.id for t in state.todos] == ["t1"]
    todo = state.todos[0]
    assert [s.id for s in todo.sub_tasks] == ["t1-0", "s2"]
    assert todo.sub_tasks[0].completed is True
    assert todo.placement.desktop == Point(0, 30)
    # mx without my is not a usable pair
    assert todo.placement.mobile is None
    assert todo.z_index == 12
    assert todo.color == DEFAULT_NOTE_COLORS[0]


def test_recurring_rules_get_defaults_per_frequency() -> None:
    raw = {
        "recurringRules": [
            {"id": "w", "title": "Gym", "frequency": "weekly", "time": "7:05", "subTasks": ["a", 3]},
            {"id": "m", "title": "Rent", "frequency": "monthly", "dayOfMonth": 40, "time": "25:00"},
            {"id": "d", "title": "Read", "frequency": "hourly", "lastGenerated": "x"},
            {"frequency": "daily"},
        ]
    }

    rules = {r.id: r for r in sanitize_state(raw, now_ms=NOW).recurring_rules}

    assert set(rules) == {"w", "m", "d"}
    assert rules["w"].frequency == Frequency.WEEKLY
    assert rules["w"].days_of_week == ()
    assert rules["w"].time == "07:05"
    assert rules["w"].sub_tasks == ("a",)
    assert rules["m"].day_of_month == 1
    assert rules["m"].time == "09:00"
    assert rules["d"].frequency == Frequency.DAILY
    assert rules["d"].last_generated == 0


def test_sanitize_is_idempotent_and_wire_stable() -> None:
    raw = {
        "points": 7,
        "deathTime": NOW + 1000,
        "todos": [
            {
                "id": "t1",
                "title": "Plant seeds",
                "subTasks": [{"id": "s1", "text": "dig", "completed": False}],
                "createdAt": NOW,
                "x": 100,
                "y": 120,
                "mx": 20,
                "my": 80,
                "zIndex": 999,
                "color": "#4F90F5",
                "isRecurring": True,
                "dueDate": NOW + DAY_MS,
            }
        ],
        "recurringRules": [
            {"id": "r1", "title": "Gym", "frequency": "weekly", "daysOfWeek": [5, 1, 1], "time": "08:00"}
        ],
    }

    once = sanitize_state(raw, now_ms=NOW)
    twice = sanitize_state(state_to_dict(once), now_ms=NOW + 99)

    assert twice == once
    assert sanitize_state(once, now_ms=NOW) == once
    assert serialize_state(twice) == serialize_state(once)
    assert once.recurring_rules[0].days_of_week == (1, 5)


def test_wire_form_uses_camel_case_and_omits_absent_pairs() -> None:
    state = sanitize_state(
        {"todos": [{"id": "t1", "title": "x", "x": 1, "y": 2}]},
        now_ms=NOW,
    )
    data = json.loads(serialize_state(state))

    assert set(data) == {
        "todos",
        "recurringRules",
        "points",
        "activePlantId",
        "deathTime",
        "isPlantDead",
        "adoptedPlants",
        "settings",
    }
    todo = data["todos"][0]
    assert "mx" not in todo and "my" not in todo and "dueDate" not in todo
    assert todo["subTasks"] == []
    assert data["settings"]["customBackground"] is None


def test_default_state_matches_sanitized_none() -> None:
    assert default_state(now_ms=NOW) == sanitize_state(None, now_ms=NOW)


@pytest.mark.parametrize("raw_death", [0.5, -0.5, 0, None, "soon"])
def test_death_time_below_one_ms_means_unset(raw_death) -> None:
    once = sanitize_state({"deathTime": raw_death}, now_ms=NOW)
    twice = sanitize_state(state_to_dict(once), now_ms=NOW + DAY_MS)

    assert once.death_time == NOW + 3 * DAY_MS
    assert twice == once


def test_fractional_death_time_is_truncated_once() -> None:
    once = sanitize_state({"deathTime": NOW + 1.75}, now_ms=NOW)
    twice = sanitize_state(state_to_dict(once), now_ms=NOW + DAY_MS)

    assert once.death_time == NOW + 1
    assert twice == once
