# src/plant_todo/sync/engine.py

"""
Local-first reconciliation with the remote snapshot.

- push: debounced after every local mutation; skipped until the first pull has
  completed, when nothing changed since the last successful push (byte-for-byte
  on the serialized state) and while another sync is in flight.
- pull: on a fixed poll interval and once at startup; skipped while a local
  edit is younger than the cooldown window. A remote that has no snapshot yet
  gets an initial push instead.
- on_first_pull: startup work that edits local state waits for the first pull,
  otherwise its edit would arm the cooldown and skip that pull.

The cooldown is longer than the push debounce, so a local edit is pushed before
the next pull may apply remote data over it. Conflicts beyond that are "last
writer wins".
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import StrEnum

from ..core.models import AppState
from ..core.ports import Clock, RemoteStore
from ..core.sanitize import sanitize_state, serialize_state, state_to_dict
from ..core.store import StateStore

logger = logging.getLogger(__name__)


class SyncStatus(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class SyncEngine:
    def __init__(
        self,
        store: StateStore,
        remote: RemoteStore,
        clock: Clock,
        *,
        debounce_seconds: float = 2.0,
        poll_interval_seconds: float = 15.0,
        cooldown_seconds: float = 5.0,
    ) -> None:
        self._store = store
        self._remote = remote
        self._clock = clock
        self._debounce_s = max(0.0, float(debounce_seconds))
        self._poll_s = max(0.5, float(poll_interval_seconds))
        self._cooldown_ms = int(max(0.0, float(cooldown_seconds)) * 1000)

        self._last_synced = ""
        self._initial_pull_done = False
        self._in_flight = False
        self._status = SyncStatus.IDLE

        self._first_pull_hooks: list[Callable[[], None]] = []
        self._first_pull_attempted = False

        self._debounce_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe: Callable[[], None] | None = None

    # ---- observability ----

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def last_synced(self) -> str:
        return self._last_synced

    @property
    def initial_pull_done(self) -> bool:
        return self._initial_pull_done

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _set_status(self, status: SyncStatus) -> None:
        if status != self._status:
            logger.debug("Sync status %s -> %s", self._status.value, status.value)
        self._status = status

    def mark_error(self, exc: Exception | None = None) -> None:
        """Report a failure from a related remote call (history, image)."""
        if exc is not None:
            logger.warning("Remote call failed: %s", exc)
        self._set_status(SyncStatus.ERROR)

    # ---- push / pull ----

    async def push(self) -> bool:
        """Send the current state if it differs from what was last synced."""
        if not self._initial_pull_done:
            logger.debug("push skipped: initial pull not done yet")
            return False
        if self._in_flight:
            # Try again once the running sync is over.
            logger.debug("push deferred: sync in flight")
            self.schedule_push()
            return False

        state = self._store.state
        data = serialize_state(state)
        if data == self._last_synced:
            return False

        self._in_flight = True
        self._set_status(SyncStatus.SYNCING)
        try:
            await self._remote.put_snapshot(state_to_dict(state))
        except Exception as exc:
            logger.warning("Push failed: %s", exc)
            self._set_status(SyncStatus.ERROR)
            return False
        finally:
            self._in_flight = False

        self._last_synced = data
        self._set_status(SyncStatus.SYNCED)
        logger.info("Pushed snapshot (%d todos, %d bytes)", len(state.todos), len(data))
        return True

    async def pull(self) -> bool:
        """Fetch the remote snapshot and apply it if it differs. Returns True if applied."""
        since_edit = self._clock.now_ms() - self._store.last_local_change_ms
        if since_edit < self._cooldown_ms:
            logger.debug("pull skipped: local edit %d ms ago (cooldown %d ms)", since_edit, self._cooldown_ms)
            return False
        if self._in_flight:
            logger.debug("pull skipped: sync in flight")
            return False

        self._in_flight = True
        edit_mark = self._store.last_local_change_ms
        applied = False
        needs_initial_push = False
        try:
            try:
                raw = await self._remote.get_snapshot()
            except Exception as exc:
                logger.warning("Pull failed: %s", exc)
                self._set_status(SyncStatus.ERROR)
            else:
                self._initial_pull_done = True
                if raw is None:
                    logger.info("Remote has no snapshot yet; pushing local state.")
                    needs_initial_push = True
                elif self._store.last_local_change_ms != edit_mark:
                    # Superseded by a local edit made while the request was out.
                    logger.info("Pulled snapshot ignored: local state changed meanwhile.")
                else:
                    remote_state = sanitize_state(raw, now_ms=self._clock.now_ms())
                    remote_str = serialize_state(remote_state)
                    if remote_str != serialize_state(self._store.state):
                        self._store.replace(remote_state)
                        applied = True
                        logger.info("Applied remote snapshot (%d todos)", len(remote_state.todos))
                    self._last_synced = remote_str
                    self._set_status(SyncStatus.SYNCED)
        finally:
            self._in_flight = False

        self._run_first_pull_hooks()
        if needs_initial_push:
            await self.push()
        return applied

    # ---- startup ordering ----

    def on_first_pull(self, hook: Callable[[], None]) -> None:
        """
        Run hook once the first pull has reached the remote (applied, not found or failed).

        Hooks run before the initial push, so local edits they make ride along with it.
        Registering after that point runs the hook right away.
        """
        if self._first_pull_attempted:
            hook()
            return
        self._first_pull_hooks.append(hook)

    def _run_first_pull_hooks(self) -> None:
        if self._first_pull_attempted:
            return
        self._first_pull_attempted = True
        hooks, self._first_pull_hooks = self._first_pull_hooks, []
        for hook in hooks:
            try:
                hook()
            except Exception:
                logger.exception("First-pull hook failed")

    # ---- timers ----

    def schedule_push(self) -> None:
        """(Re)start the debounce timer."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("schedule_push ignored: no running event loop")
            return
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = loop.call_later(self._debounce_s, self._fire_push)

    def _fire_push(self) -> None:
        self._debounce_handle = None
        self._spawn(self.push())

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_state_change(self, state: AppState, *, local: bool) -> None:
        if local:
            self.schedule_push()

    async def run_polling(self) -> None:
        """Pull now, then every poll interval. Cancel the task to stop."""
        while True:
            try:
                await self.pull()
            except Exception:
                logger.exception("Sync poll iteration failed")
            await asyncio.sleep(self._poll_s)

    def start(self) -> None:
        """Subscribe to local mutations and start polling (needs a running loop)."""
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_state_change)
        self._spawn(self.run_polling())

    async def close(self) -> None:
        """Cancel every timer and task owned by the engine."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        self._tasks.clear()
