# src/plant_todo/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the remote store and the time source swappable and makes testing easier.
"""

from datetime import datetime
from typing import Any, Protocol

from .models import AppState

JsonDict = dict[str, Any]


class Clock(Protocol):
    """Wall-clock source. now() is naive local time; now_ms() is epoch milliseconds."""

    def now_ms(self) -> int: ...
    def now(self) -> datetime: ...


class RemoteStore(Protocol):
    """
    Remote persistence consumed by sync and gamification.

    Every method raises RemoteStoreError on transport or protocol failure;
    callers decide whether that is fatal (it never is inside the core).
    """

    # Snapshot (whole AppState, last writer wins)
    async def get_snapshot(self) -> JsonDict | None: ...
    async def put_snapshot(self, payload: JsonDict) -> None: ...
    async def factory_reset(self) -> int: ...

    # Append-only conversion history
    async def get_history(self) -> list[JsonDict]: ...
    async def append_history(self, records: JsonDict | list[JsonDict]) -> int: ...

    # Custom background image
    async def upload_image(self, data: bytes, *, filename: str = "background") -> None: ...
    async def fetch_image(self) -> bytes | None: ...


class StateListener(Protocol):
    """Called after every commit to the StateStore (local=False for applied pulls)."""

    def __call__(self, state: AppState, *, local: bool) -> None: ...
