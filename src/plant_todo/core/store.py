# src/plant_todo/core/store.py

from __future__ import annotations

import logging
from collections.abc import Callable

from .models import AppState
from .ports import Clock, StateListener

logger = logging.getLogger(__name__)

Mutation = Callable[[AppState], "AppState | None"]


class StateStore:
    """
    Owner of the single live AppState.

    Every component gets the store passed in explicitly. Mutations go through
    update(), which runs read -> compute -> write synchronously, so nothing can
    interleave between reading the current state and committing the next one.

    Local mutations stamp last_local_change_ms (the sync cooldown reads it);
    replacing the state with a pulled snapshot does not.
    """

    def __init__(self, initial: AppState, clock: Clock) -> None:
        self._state = initial
        self._clock = clock
        self._last_local_change_ms = 0
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def last_local_change_ms(self) -> int:
        return self._last_local_change_ms

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def mark_local_change(self) -> None:
        self._last_local_change_ms = self._clock.now_ms()

    def update(self, mutation: Mutation) -> AppState:
        """
        Apply a local mutation.

        The mutation returns the next state, or None when nothing changed
        (no timestamp, no listeners).
        """
        nxt = mutation(self._state)
        if nxt is None:
            return self._state
        self.mark_local_change()
        self._state = nxt
        self._notify(local=True)
        return nxt

    def replace(self, state: AppState, *, local: bool = False) -> None:
        """Swap in a whole new state (applied pull, factory reset)."""
        if local:
            self.mark_local_change()
        self._state = state
        self._notify(local=local)

    def _notify(self, *, local: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state, local=local)
            except Exception:
                logger.exception("State listener failed: %r", listener)
