# src/plant_todo/core/sanitize.py

"""
Trust boundary for externally-sourced state.

sanitize_state() turns anything (remote snapshot, local JSON copy, None, garbage)
into a fully-populated AppState, replacing missing or mistyped fields one by one
with defaults instead of rejecting the payload. It never raises, and feeding its
own output back in yields the same value.

state_to_dict() / serialize_state() produce the camelCase wire form; the
serialized string doubles as the byte-for-byte comparison key used by sync.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

from .models import (
    DAY_MS,
    DEFAULT_NOTE_COLORS,
    DEFAULT_PLANT_ID,
    INITIAL_SURVIVAL_DAYS,
    BASE_Z_INDEX,
    AppSettings,
    AppState,
    Frequency,
    Placement,
    Point,
    RecurringRule,
    ScreenEffect,
    SubTask,
    Todo,
)

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
DEFAULT_RULE_TIME = "09:00"


def _is_number(v: Any) -> bool:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return False
    return math.isfinite(v)


def _num(v: Any, default: float) -> float:
    return v if _is_number(v) else default


def _int(v: Any, default: int) -> int:
    if not _is_number(v):
        return default
    return int(v)


def _opt_int(v: Any) -> int | None:
    return int(v) if _is_number(v) else None


def _str(v: Any, default: str = "") -> str:
    return v if isinstance(v, str) else default


def _id(v: Any) -> str | None:
    if isinstance(v, str) and v.strip():
        return v
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return None


def _as_dict(v: Any) -> dict[str, Any]:
    return v if isinstance(v, dict) else {}


def _as_list(v: Any) -> list[Any]:
    return v if isinstance(v, (list, tuple)) else []


def normalize_time(raw: Any) -> str | None:
    """Return "HH:MM" for a valid 24h time string, else None."""
    if not isinstance(raw, str):
        return None
    m = _TIME_RE.match(raw.strip())
    if not m:
        return None
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


# ---- per-entity sanitizers ----


def _sanitize_subtask(raw: Any, fallback_id: str) -> SubTask | None:
    if not isinstance(raw, dict):
        return None
    return SubTask(
        id=_id(raw.get("id")) or fallback_id,
        text=_str(raw.get("text")),
        completed=bool(raw.get("completed")),
    )


def _sanitize_todo(raw: Any) -> Todo | None:
    if not isinstance(raw, dict):
        return None
    todo_id = _id(raw.get("id"))
    if todo_id is None:
        return None

    subtasks = []
    for idx, item in enumerate(_as_list(raw.get("subTasks"))):
        sub = _sanitize_subtask(item, f"{todo_id}-{idx}")
        if sub is not None:
            subtasks.append(sub)

    desktop = Point(_num(raw.get("x"), 0), _num(raw.get("y"), 0))
    mobile = None
    if _is_number(raw.get("mx")) and _is_number(raw.get("my")):
        mobile = Point(raw["mx"], raw["my"])

    return Todo(
        id=todo_id,
        title=_str(raw.get("title")),
        sub_tasks=tuple(subtasks),
        created_at=_int(raw.get("createdAt"), 0),
        placement=Placement(desktop=desktop, mobile=mobile),
        z_index=_int(raw.get("zIndex"), BASE_Z_INDEX),
        color=_str(raw.get("color")) or DEFAULT_NOTE_COLORS[0],
        is_converted=bool(raw.get("isConverted")),
        is_recurring=bool(raw.get("isRecurring")),
        due_date=_opt_int(raw.get("dueDate")),
    )


def _sanitize_days_of_week(raw: Any) -> tuple[int, ...] | None:
    if not isinstance(raw, (list, tuple)):
        return None
    days = sorted({int(d) for d in raw if _is_number(d) and int(d) == d and 0 <= d <= 6})
    return tuple(days)


def _sanitize_rule(raw: Any) -> RecurringRule | None:
    if not isinstance(raw, dict):
        return None
    rule_id = _id(raw.get("id"))
    if rule_id is None:
        return None

    frequency = Frequency.from_raw(raw.get("frequency"))

    days_of_week = _sanitize_days_of_week(raw.get("daysOfWeek"))
    if frequency == Frequency.WEEKLY and days_of_week is None:
        days_of_week = ()

    day_of_month = _opt_int(raw.get("dayOfMonth"))
    if day_of_month is not None and not (1 <= day_of_month <= 31):
        day_of_month = None
    if frequency == Frequency.MONTHLY and day_of_month is None:
        day_of_month = 1

    return RecurringRule(
        id=rule_id,
        title=_str(raw.get("title")),
        sub_tasks=tuple(s for s in _as_list(raw.get("subTasks")) if isinstance(s, str)),
        frequency=frequency,
        time=normalize_time(raw.get("time")) or DEFAULT_RULE_TIME,
        color=_str(raw.get("color")) or DEFAULT_NOTE_COLORS[0],
        days_of_week=days_of_week,
        day_of_month=day_of_month,
        last_generated=_int(raw.get("lastGenerated"), 0),
    )


def _sanitize_settings(raw: Any) -> AppSettings:
    d = _as_dict(raw)
    glass = d.get("glassEffectEnabled")
    colors = tuple(c for c in _as_list(d.get("noteColors")) if isinstance(c, str) and c)
    background = d.get("customBackground")
    return AppSettings(
        glass_effect_enabled=True if glass is None else bool(glass),
        glass_opacity=_num(d.get("glassOpacity"), 0.6),
        custom_background=background if isinstance(background, str) and background else None,
        screen_effect=ScreenEffect.from_raw(d.get("screenEffect")),
        note_colors=colors or DEFAULT_NOTE_COLORS,
    )


def sanitize_state(raw: Any, *, now_ms: int) -> AppState:
    """Build a valid AppState from arbitrary input. Total and idempotent."""
    if isinstance(raw, AppState):
        raw = state_to_dict(raw)
    d = _as_dict(raw)

    todos = tuple(t for t in (_sanitize_todo(x) for x in _as_list(d.get("todos"))) if t is not None)
    rules = tuple(
        r for r in (_sanitize_rule(x) for x in _as_list(d.get("recurringRules"))) if r is not None
    )

    # 0 after truncation means unset.
    death_time = _int(d.get("deathTime"), 0)
    if death_time == 0:
        death_time = now_ms + INITIAL_SURVIVAL_DAYS * DAY_MS

    active_plant = d.get("activePlantId")
    adopted = d.get("adoptedPlants")

    return AppState(
        todos=todos,
        recurring_rules=rules,
        points=_num(d.get("points"), 0),
        active_plant_id=active_plant if isinstance(active_plant, str) and active_plant else DEFAULT_PLANT_ID,
        death_time=death_time,
        is_plant_dead=bool(d.get("isPlantDead")),
        adopted_plants=(
            tuple(p for p in adopted if isinstance(p, str))
            if isinstance(adopted, (list, tuple))
            else (DEFAULT_PLANT_ID,)
        ),
        settings=_sanitize_settings(d.get("settings")),
    )


def default_state(*, now_ms: int) -> AppState:
    return sanitize_state(None, now_ms=now_ms)


# ---- wire form ----


def subtask_to_dict(sub: SubTask) -> dict[str, Any]:
    return {"id": sub.id, "text": sub.text, "completed": sub.completed}


def todo_to_dict(todo: Todo) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": todo.id,
        "title": todo.title,
        "subTasks": [subtask_to_dict(s) for s in todo.sub_tasks],
        "createdAt": todo.created_at,
        "x": todo.placement.desktop.x,
        "y": todo.placement.desktop.y,
    }
    if todo.placement.mobile is not None:
        out["mx"] = todo.placement.mobile.x
        out["my"] = todo.placement.mobile.y
    out["zIndex"] = todo.z_index
    out["color"] = todo.color
    out["isConverted"] = todo.is_converted
    out["isRecurring"] = todo.is_recurring
    if todo.due_date is not None:
        out["dueDate"] = todo.due_date
    return out


def rule_to_dict(rule: RecurringRule) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": rule.id,
        "title": rule.title,
        "subTasks": list(rule.sub_tasks),
        "frequency": rule.frequency.value,
        "time": rule.time,
    }
    if rule.days_of_week is not None:
        out["daysOfWeek"] = list(rule.days_of_week)
    if rule.day_of_month is not None:
        out["dayOfMonth"] = rule.day_of_month
    out["color"] = rule.color
    out["lastGenerated"] = rule.last_generated
    return out


def settings_to_dict(settings: AppSettings) -> dict[str, Any]:
    return {
        "glassEffectEnabled": settings.glass_effect_enabled,
        "glassOpacity": settings.glass_opacity,
        "customBackground": settings.custom_background,
        "screenEffect": settings.screen_effect.value,
        "noteColors": list(settings.note_colors),
    }


def state_to_dict(state: AppState) -> dict[str, Any]:
    return {
        "todos": [todo_to_dict(t) for t in state.todos],
        "recurringRules": [rule_to_dict(r) for r in state.recurring_rules],
        "points": state.points,
        "activePlantId": state.active_plant_id,
        "deathTime": state.death_time,
        "isPlantDead": state.is_plant_dead,
        "adoptedPlants": list(state.adopted_plants),
        "settings": settings_to_dict(state.settings),
    }


def serialize_state(state: AppState) -> str:
    return json.dumps(state_to_dict(state), ensure_ascii=False, separators=(",", ":"))
