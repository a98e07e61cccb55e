# src/plant_todo/core/history.py

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any

from .clock import to_ms
from .models import Todo
from .sanitize import todo_to_dict

HistoryRecord = dict[str, Any]


def history_record(todo: Todo, converted_at_ms: int) -> HistoryRecord:
    """Append-only log entry for a converted todo (wire dict + convertedAt)."""
    record = todo_to_dict(todo)
    record["isConverted"] = True
    record["convertedAt"] = converted_at_ms
    return record


def _converted_at(record: HistoryRecord) -> int:
    value = record.get("convertedAt")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def filter_history(
    records: list[HistoryRecord],
    *,
    search: str = "",
    start: date | None = None,
    end: date | None = None,
) -> list[HistoryRecord]:
    """
    Title substring match (case-insensitive) and an inclusive local-date window.
    Newest conversions first.
    """
    needle = search.strip().lower()
    start_ms = to_ms(datetime.combine(start, time.min)) if start else None
    end_ms = to_ms(datetime.combine(end + timedelta(days=1), time.min)) - 1 if end else None

    out = []
    for record in records:
        if not isinstance(record, dict):
            continue
        title = record.get("title")
        if needle and needle not in (title if isinstance(title, str) else "").lower():
            continue
        ts = _converted_at(record)
        if start_ms is not None and ts < start_ms:
            continue
        if end_ms is not None and ts > end_ms:
            continue
        out.append(record)

    out.sort(key=_converted_at, reverse=True)
    return out
