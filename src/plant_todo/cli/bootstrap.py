# src/plant_todo/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- seeds the StateStore from the local JSON copy,
- wires the remote client, sync engine, recurring scheduler, gamification
  engine and viewport reconciler around that one store.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from dataclasses import dataclass, field

import httpx

from ..config import Settings, get_settings
from ..core.clock import SystemClock
from ..core.gamification import GamificationEngine
from ..core.ports import Clock
from ..core.store import StateStore
from ..core.viewport import Viewport, ViewportReconciler
from ..sync.engine import SyncEngine
from ..sync.persistence import LocalStateFile
from ..sync.remote import RemoteStoreClient
from ..tasks.task_scheduler import RecurringScheduler, run_recurring_scheduler

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContext:
    """Everything a connector or command needs, built around one StateStore."""

    settings: Settings
    clock: Clock
    store: StateStore
    persistence: LocalStateFile
    remote: RemoteStoreClient | None
    sync: SyncEngine | None
    reconciler: ViewportReconciler
    scheduler: RecurringScheduler
    gamification: GamificationEngine
    rng: random.Random = field(default_factory=random.Random)
    tasks: list[asyncio.Task] = field(default_factory=list)
    stopping: bool = False

    @property
    def viewport(self) -> Viewport:
        return self.reconciler.viewport

    def report_remote_error(self, exc: Exception) -> None:
        if self.sync is not None:
            self.sync.mark_error(exc)
        else:
            logger.warning("Remote call failed: %s", exc)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.state_path.parent.mkdir(parents=True, exist_ok=True)


def create_app_context(
    *,
    settings: Settings | None = None,
    clock: Clock | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    rng: random.Random | None = None,
) -> AppContext:
    """
    Build the app from the provided settings.

    Keeping settings/clock/transport injectable makes the app easy to test.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()
    clock = clock or SystemClock()
    rng = rng or random.Random()

    _ensure_local_dirs(settings)

    persistence = LocalStateFile(settings.state_path)
    store = StateStore(persistence.load(now_ms=clock.now_ms()), clock)
    store.subscribe(persistence)

    remote: RemoteStoreClient | None = None
    sync: SyncEngine | None = None
    if settings.sync_enabled:
        try:
            remote = RemoteStoreClient(
                settings.api_base_url,
                settings.profile_id,
                timeout=settings.http_timeout_seconds,
                transport=transport,
            )
        except Exception:
            # Local-only mode when the remote cannot be configured.
            logger.exception("Remote store unavailable; running local-only.")
            remote = None
    if remote is not None:
        sync = SyncEngine(
            store,
            remote,
            clock,
            debounce_seconds=settings.push_debounce_seconds,
            poll_interval_seconds=settings.sync_interval_seconds,
            cooldown_seconds=settings.pull_cooldown_seconds,
        )

    reconciler = ViewportReconciler(store, Viewport(settings.viewport_width, settings.viewport_height))
    scheduler = RecurringScheduler(store, clock, lambda: reconciler.viewport, rng=rng)

    ctx = AppContext(
        settings=settings,
        clock=clock,
        store=store,
        persistence=persistence,
        remote=remote,
        sync=sync,
        reconciler=reconciler,
        scheduler=scheduler,
        gamification=GamificationEngine(
            store,
            clock,
            remote=remote,
            grace_seconds=settings.conversion_grace_seconds,
        ),
        rng=rng,
    )
    ctx.gamification.set_remote_error_handler(ctx.report_remote_error)
    return ctx


def _start_local_loops(ctx: AppContext) -> None:
    """Viewport repair plus the scheduler and survival loops; all of them edit local state."""
    if ctx.stopping:
        return
    ctx.reconciler.run()
    ctx.tasks.append(
        asyncio.create_task(
            run_recurring_scheduler(ctx.scheduler, interval_seconds=ctx.settings.scheduler_interval_seconds),
            name="recurring-scheduler",
        )
    )
    ctx.tasks.append(
        asyncio.create_task(
            ctx.gamification.run_survival_loop(interval_seconds=ctx.settings.survival_interval_seconds),
            name="survival-check",
        )
    )


def start_background(ctx: AppContext) -> None:
    """Start the periodic loops. Needs a running event loop."""
    if ctx.sync is not None:
        # Local loops start once the startup pull has run.
        ctx.sync.on_first_pull(lambda: _start_local_loops(ctx))
        ctx.sync.start()
    else:
        _start_local_loops(ctx)
    logger.info("Background loops started (sync=%s).", ctx.sync is not None)


async def shutdown(ctx: AppContext) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    ctx.stopping = True
    for task in ctx.tasks:
        task.cancel()
    for task in ctx.tasks:
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await task
    ctx.tasks.clear()

    ctx.gamification.close()

    if ctx.sync is not None:
        try:
            # Flush the last local edit before leaving.
            await ctx.sync.push()
        except Exception:
            logger.debug("Final push failed.", exc_info=True)
        await ctx.sync.close()

    if ctx.remote is not None:
        try:
            await ctx.remote.aclose()
        except Exception:
            logger.debug("HTTP client close failed.", exc_info=True)

    ctx.persistence.save(ctx.store.state)
