# tests/fakes.py

from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timedelta
from typing import Any

from plant_todo.core.clock import to_local, to_ms


class FakeClock:
    """
    Manually advanced clock.

    now() is derived from now_ms() so both views always agree.
    """

    def __init__(self, start: datetime) -> None:
        self.ms = to_ms(start)

    def now_ms(self) -> int:
        return self.ms

    def now(self) -> datetime:
        return to_local(self.ms)

    def advance(self, *, seconds: float = 0, minutes: float = 0, days: float = 0) -> None:
        self.ms += int(timedelta(seconds=seconds, minutes=minutes, days=days).total_seconds() * 1000)

    def set(self, when: datetime) -> None:
        self.ms = to_ms(when)


class FakeRemoteStore:
    """
    In-memory RemoteStore.

    - snapshot None means "not found"
    - `gate` (if set) blocks get/put until released, to hold a sync in flight
    - `fail` makes every call raise
    """

    def __init__(self, snapshot: dict[str, Any] | None = None) -> None:
        self.snapshot = copy.deepcopy(snapshot)
        self.puts: list[dict[str, Any]] = []
        self.history: list[dict[str, Any]] = []
        self.images: list[bytes] = []
        self.get_calls = 0
        self.reset_calls = 0
        self.fail = False
        self.gate: asyncio.Event | None = None

    async def _maybe_block(self) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("remote down")

    async def get_snapshot(self) -> dict[str, Any] | None:
        self.get_calls += 1
        await self._maybe_block()
        return copy.deepcopy(self.snapshot)

    async def put_snapshot(self, payload: dict[str, Any]) -> None:
        await self._maybe_block()
        self.puts.append(copy.deepcopy(payload))
        self.snapshot = copy.deepcopy(payload)

    async def factory_reset(self) -> int:
        await self._maybe_block()
        self.reset_calls += 1
        deleted = len(self.history) + (1 if self.snapshot else 0)
        self.snapshot = None
        self.history.clear()
        return deleted

    async def get_history(self) -> list[dict[str, Any]]:
        await self._maybe_block()
        return copy.deepcopy(self.history)

    async def append_history(self, records) -> int:
        await self._maybe_block()
        items = records if isinstance(records, list) else [records]
        self.history.extend(copy.deepcopy(items))
        return len(items)

    async def upload_image(self, data: bytes, *, filename: str = "background") -> None:
        await self._maybe_block()
        self.images.append(data)

    async def fetch_image(self) -> bytes | None:
        await self._maybe_block()
        return self.images[-1] if self.images else None
