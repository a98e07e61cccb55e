# src/plant_todo/core/clock.py

from __future__ import annotations

import time
from datetime import datetime


class SystemClock:
    """Real wall clock (local time zone)."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def now(self) -> datetime:
        return datetime.now()


def to_local(ms: int) -> datetime:
    """Epoch milliseconds -> naive local datetime."""
    return datetime.fromtimestamp(ms / 1000)


def to_ms(dt: datetime) -> int:
    """Naive local (or aware) datetime -> epoch milliseconds."""
    return int(round(dt.timestamp() * 1000))
