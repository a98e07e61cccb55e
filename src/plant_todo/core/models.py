# src/plant_todo/core/models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum

# ---- Game constants ----

POINTS_PER_TODO = 1
SURVIVAL_DAYS_PER_POINT = 5
INITIAL_SURVIVAL_DAYS = 3
NEW_PLANT_COST = 300

DAY_MS = 24 * 60 * 60 * 1000

# Plant growth stage thresholds (points >= threshold).
STAGE_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (30, "blooming"),
    (15, "mature"),
    (5, "young"),
    (1, "sprout"),
)

PLANTS: dict[str, str] = {
    "monstera": "Elegant Monstera",
    "lavender": "Romantic Lavender",
    "rose": "Graceful Red Rose",
    "sakura": "Dreamy Early Sakura",
    "tulip": "Poised Tulip",
    "palm": "Tropical Palm",
    "maple": "Autumn Red Maple",
    "willow": "Weeping Willow",
    "cactus": "Cute Cactus",
    "sunflower": "Lively Sunflower",
    "bonsai": "Old Pine Bonsai",
}
DEFAULT_PLANT_ID = "monstera"

DEFAULT_NOTE_COLORS: tuple[str, ...] = (
    "#F4E1E8",
    "#4F90F5",
    "#9FBEED",
    "#F3F6F2",
    "#6159A7",
    "#BBADEA",
    "#412C3C",
    "#98C3C9",
    "#433931",
    "#2D431A",
)

# z-order given to freshly generated recurring notes so they land on top.
FRONT_Z_INDEX = 999
BASE_Z_INDEX = 10


class ViewMode(StrEnum):
    DESKTOP = "desktop"
    MOBILE = "mobile"

    @classmethod
    def for_width(cls, width: int) -> ViewMode:
        return cls.MOBILE if width < 1024 else cls.DESKTOP


class Frequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def from_raw(cls, raw: object) -> Frequency:
        if not isinstance(raw, str):
            return cls.DAILY
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.DAILY


class ScreenEffect(StrEnum):
    NONE = "none"
    LIGHT_SNOW = "light-snow"
    HEAVY_SNOW = "heavy-snow"
    LIGHT_RAIN = "light-rain"
    HEAVY_RAIN = "heavy-rain"
    SAKURA = "sakura"

    @classmethod
    def from_raw(cls, raw: object) -> ScreenEffect:
        if not isinstance(raw, str):
            return cls.NONE
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class Placement:
    """
    Where a note sits, per display mode.

    Both pairs are kept so switching modes does not lose placement; only the
    pair selected by the current ViewMode is authoritative.
    """

    desktop: Point
    mobile: Point | None = None

    def point_for(self, mode: ViewMode) -> Point | None:
        return self.mobile if mode == ViewMode.MOBILE else self.desktop

    def with_point(self, mode: ViewMode, point: Point) -> Placement:
        if mode == ViewMode.MOBILE:
            return Placement(desktop=self.desktop, mobile=point)
        return Placement(desktop=point, mobile=self.mobile)


@dataclass(frozen=True, slots=True)
class SubTask:
    id: str
    text: str
    completed: bool = False


@dataclass(frozen=True, slots=True)
class Todo:
    id: str
    title: str
    sub_tasks: tuple[SubTask, ...]
    created_at: int
    placement: Placement
    z_index: int
    color: str
    is_converted: bool = False
    is_recurring: bool = False
    due_date: int | None = None

    @property
    def is_completable(self) -> bool:
        """Eligible for conversion: at least one subtask and all of them done."""
        return bool(self.sub_tasks) and all(s.completed for s in self.sub_tasks)


@dataclass(frozen=True, slots=True)
class RecurringRule:
    id: str
    title: str
    sub_tasks: tuple[str, ...]
    frequency: Frequency
    time: str  # "HH:MM"
    color: str
    days_of_week: tuple[int, ...] | None = None  # 0=Sunday..6=Saturday
    day_of_month: int | None = None  # 1..31
    last_generated: int = 0  # epoch ms; the only idempotency guard


@dataclass(frozen=True, slots=True)
class AppSettings:
    glass_effect_enabled: bool = True
    glass_opacity: float = 0.6
    custom_background: str | None = None
    screen_effect: ScreenEffect = ScreenEffect.NONE
    note_colors: tuple[str, ...] = DEFAULT_NOTE_COLORS


@dataclass(frozen=True, slots=True)
class AppState:
    todos: tuple[Todo, ...]
    recurring_rules: tuple[RecurringRule, ...]
    points: float
    active_plant_id: str
    death_time: int
    is_plant_dead: bool
    adopted_plants: tuple[str, ...]
    settings: AppSettings = field(default_factory=AppSettings)

    def find_todo(self, todo_id: str) -> Todo | None:
        for t in self.todos:
            if t.id == todo_id:
                return t
        return None

    def find_rule(self, rule_id: str) -> RecurringRule | None:
        for r in self.recurring_rules:
            if r.id == rule_id:
                return r
        return None


def new_id() -> str:
    return uuid.uuid4().hex[:12]


class GameRuleError(ValueError):
    """A user action that the game rules reject (cost, unknown ids, blank input)."""
