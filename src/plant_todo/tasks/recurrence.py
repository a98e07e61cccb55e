# src/plant_todo/tasks/recurrence.py

from __future__ import annotations

"""
Recurrence rule evaluation.

A stateless function of (rule, now) decides whether a rule fires:

1. day guard   - lastGenerated falls on today's date -> skip (any frequency)
2. time guard  - wall clock is before the rule's HH:MM -> skip
3. frequency   - daily always; weekly if today's weekday is listed;
                 monthly if today is the rule's day of month, where a day past
                 the end of a short month is clamped to the month's last day

On eligibility a fresh Todo is synthesized with a due date at the end of the
current day / week (Sunday) / month.
"""

import calendar
import logging
import random
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta

from ..core.actions import random_desktop_point
from ..core.clock import to_local, to_ms
from ..core.models import (
    FRONT_Z_INDEX,
    AppState,
    Frequency,
    Placement,
    Point,
    RecurringRule,
    SubTask,
    Todo,
    new_id,
)
from ..core.sanitize import normalize_time
from ..core.viewport import Viewport

logger = logging.getLogger(__name__)

MOBILE_RECURRING_SPAWN = Point(20, 80)


def js_weekday(d: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (d.weekday() + 1) % 7


def parse_rule_time(value: str) -> time:
    normalized = normalize_time(value)
    if normalized is None:
        raise ValueError(f"Invalid rule time: {value!r}")
    hh, mm = normalized.split(":")
    return time(int(hh), int(mm))


def effective_day_of_month(day_of_month: int, today: date) -> int:
    last = calendar.monthrange(today.year, today.month)[1]
    return min(day_of_month, last)


def generated_today(rule: RecurringRule, now: datetime) -> bool:
    if rule.last_generated <= 0:
        return False
    return to_local(rule.last_generated).date() == now.date()


def frequency_matches(rule: RecurringRule, today: date) -> bool:
    if rule.frequency == Frequency.DAILY:
        return True
    if rule.frequency == Frequency.WEEKLY:
        return js_weekday(today) in (rule.days_of_week or ())
    if rule.frequency == Frequency.MONTHLY:
        if rule.day_of_month is None:
            return False
        return today.day == effective_day_of_month(rule.day_of_month, today)
    return False


def is_due(rule: RecurringRule, now: datetime) -> bool:
    if generated_today(rule, now):
        return False
    try:
        trigger = parse_rule_time(rule.time)
    except ValueError:
        logger.warning("Rule %s has an invalid time %r; skipping", rule.id, rule.time)
        return False
    if now.time() < trigger:
        return False
    return frequency_matches(rule, now.date())


def _end_of_day_ms(d: date) -> int:
    # 23:59:59.999 local == next local midnight minus 1 ms
    return to_ms(datetime.combine(d + timedelta(days=1), time.min)) - 1


def due_date_ms(frequency: Frequency, now: datetime) -> int:
    today = now.date()
    if frequency == Frequency.WEEKLY:
        # Weeks end on Sunday; on a Sunday that is today.
        days_to_sunday = (6 - today.weekday()) % 7
        return _end_of_day_ms(today + timedelta(days=days_to_sunday))
    if frequency == Frequency.MONTHLY:
        last = calendar.monthrange(today.year, today.month)[1]
        return _end_of_day_ms(today.replace(day=last))
    return _end_of_day_ms(today)


def materialize_todo(
    rule: RecurringRule,
    now: datetime,
    viewport: Viewport,
    *,
    rng: random.Random | None = None,
) -> Todo:
    return Todo(
        id=new_id(),
        title=rule.title,
        sub_tasks=tuple(SubTask(id=new_id(), text=text, completed=False) for text in rule.sub_tasks),
        created_at=to_ms(now),
        placement=Placement(
            desktop=random_desktop_point(viewport, rng),
            mobile=MOBILE_RECURRING_SPAWN,
        ),
        z_index=FRONT_Z_INDEX,
        color=rule.color,
        is_converted=False,
        is_recurring=True,
        due_date=due_date_ms(rule.frequency, now),
    )


@dataclass(frozen=True, slots=True)
class Generation:
    rule_id: str
    todo: Todo


def generate_due_todos(
    state: AppState,
    now: datetime,
    viewport: Viewport,
    *,
    rng: random.Random | None = None,
) -> tuple[AppState, list[Generation]]:
    """
    Evaluate every rule; append a todo and stamp lastGenerated for each one that fires.

    Both writes land in the same returned state.
    """
    now_ms = to_ms(now)
    generated: list[Generation] = []
    rules: list[RecurringRule] = []

    for rule in state.recurring_rules:
        if is_due(rule, now):
            todo = materialize_todo(rule, now, viewport, rng=rng)
            generated.append(Generation(rule_id=rule.id, todo=todo))
            rule = replace(rule, last_generated=now_ms)
        rules.append(rule)

    if not generated:
        return state, []

    return (
        replace(
            state,
            todos=(*state.todos, *(g.todo for g in generated)),
            recurring_rules=tuple(rules),
        ),
        generated,
    )
