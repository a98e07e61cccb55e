# src/plant_todo/tasks/rule_api.py

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime

from ..core.clock import to_ms
from ..core.models import AppState, Frequency, RecurringRule, Todo, new_id
from ..core.sanitize import normalize_time
from ..core.store import StateStore
from ..core.viewport import Viewport
from .recurrence import is_due, materialize_todo

logger = logging.getLogger(__name__)


class RuleValidationError(ValueError):
    """A recurrence rule definition that cannot be scheduled."""


def build_rule(
    *,
    title: str,
    sub_tasks: Sequence[str],
    frequency: Frequency | str,
    time: str,
    color: str,
    days_of_week: Sequence[int] | None = None,
    day_of_month: int | None = None,
    rule_id: str | None = None,
    last_generated: int = 0,
) -> RecurringRule:
    """Validate user input and build a rule (weekly needs days, monthly needs a day)."""
    if not title or not title.strip():
        raise RuleValidationError("Rule title must not be empty.")
    try:
        freq = Frequency(str(frequency).strip().lower())
    except ValueError:
        raise RuleValidationError(f"Unknown frequency: {frequency!r}") from None
    normalized_time = normalize_time(time)
    if normalized_time is None:
        raise RuleValidationError(f"Time must be HH:MM, got {time!r}.")

    days: tuple[int, ...] | None = None
    dom: int | None = None
    if freq == Frequency.WEEKLY:
        try:
            days = tuple(sorted({int(d) for d in (days_of_week or ())}))
        except (TypeError, ValueError):
            raise RuleValidationError("Days of week must be integers.") from None
        if not days or any(d < 0 or d > 6 for d in days):
            raise RuleValidationError("Weekly rules need days of week in 0..6 (0=Sunday).")
    elif freq == Frequency.MONTHLY:
        if day_of_month is None or not (1 <= int(day_of_month) <= 31):
            raise RuleValidationError("Monthly rules need a day of month in 1..31.")
        dom = int(day_of_month)

    return RecurringRule(
        id=rule_id or new_id(),
        title=title.strip(),
        sub_tasks=tuple(t.strip() for t in sub_tasks if t and t.strip()),
        frequency=freq,
        time=normalized_time,
        color=color,
        days_of_week=days,
        day_of_month=dom,
        last_generated=last_generated,
    )


def create_rule(
    store: StateStore,
    rule: RecurringRule,
    *,
    now: datetime,
    viewport: Viewport,
    rng: random.Random | None = None,
) -> tuple[RecurringRule, Todo | None]:
    """
    Save a new rule, generating its first todo right away if it is already due.

    Rules created after today's trigger time would otherwise wait for the next
    tick (or day). The rule is stored with lastGenerated already stamped, in the
    same state write as the todo.
    """
    rule = replace(rule, last_generated=0)
    todo: Todo | None = None
    if is_due(rule, now):
        todo = materialize_todo(rule, now, viewport, rng=rng)
        rule = replace(rule, last_generated=to_ms(now))

    def _mutate(state: AppState) -> AppState:
        if state.find_rule(rule.id) is not None:
            raise RuleValidationError(f"Rule {rule.id} already exists.")
        todos = state.todos if todo is None else (*state.todos, todo)
        return replace(state, recurring_rules=(*state.recurring_rules, rule), todos=todos)

    store.update(_mutate)
    logger.info(
        "Created rule id=%s freq=%s time=%s (immediate=%s)",
        rule.id,
        rule.frequency.value,
        rule.time,
        todo is not None,
    )
    return rule, todo


def update_rule(store: StateStore, edited: RecurringRule) -> RecurringRule:
    """Replace a rule's definition. Keeps lastGenerated; never regenerates."""

    def _mutate(state: AppState) -> AppState:
        current = state.find_rule(edited.id)
        if current is None:
            raise RuleValidationError(f"Unknown rule: {edited.id}")
        kept = replace(edited, last_generated=current.last_generated)
        return replace(
            state,
            recurring_rules=tuple(kept if r.id == edited.id else r for r in state.recurring_rules),
        )

    result = store.update(_mutate).find_rule(edited.id)
    if result is None:
        raise RuleValidationError(f"Rule vanished during update: {edited.id}")
    return result


def delete_rule(store: StateStore, rule_id: str) -> bool:
    """Remove a rule. Todos it already generated stay."""

    def _mutate(state: AppState) -> AppState | None:
        rules = tuple(r for r in state.recurring_rules if r.id != rule_id)
        if len(rules) == len(state.recurring_rules):
            return None
        return replace(state, recurring_rules=rules)

    before = store.state
    return store.update(_mutate) is not before
