# src/plant_todo/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from pathlib import Path
from typing import TYPE_CHECKING, cast

from ..core import actions
from ..core.clock import to_local
from ..core.gamification import adopt_plant, plant_stage
from ..core.history import filter_history
from ..core.models import PLANTS, GameRuleError, Point, Todo
from ..core.sanitize import default_state
from ..core.viewport import Viewport
from ..tasks.rule_api import RuleValidationError, build_rule, create_rule, delete_rule, update_rule

if TYPE_CHECKING:
    from .bootstrap import AppContext

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[["AppContext", list[str]], Awaitable[str]]
CommandHandler3 = Callable[["AppContext", list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        ctx: AppContext,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return await h3(ctx, args, emit)
            h2 = cast(CommandHandler2, handler)
            return await h2(ctx, args)
        except (GameRuleError, RuleValidationError) as e:
            return f"Rejected: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _fmt_ms(ms: object) -> str:
    if isinstance(ms, bool) or not isinstance(ms, (int, float)) or not ms:
        return "-"
    return to_local(ms).strftime("%Y-%m-%d %H:%M")


def _split_title(args: list[str]) -> tuple[str, list[str]]:
    """'Title words | sub one | sub two' -> ('Title words', ['sub one', 'sub two'])."""
    parts = [p.strip() for p in " ".join(args).split("|")]
    return parts[0], [p for p in parts[1:] if p]


def _resolve_todo(ctx: AppContext, token: str) -> Todo | None:
    """A todo by its 1-based /list position or by a unique id prefix."""
    todos = ctx.store.state.todos
    if token.isdigit():
        idx = int(token) - 1
        if 0 <= idx < len(todos):
            return todos[idx]
    matches = [t for t in todos if t.id.startswith(token)]
    return matches[0] if len(matches) == 1 else None


def _parse_date(raw: str) -> date:
    try:
        return datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        raise GameRuleError(f"Dates must be YYYY-MM-DD, got {raw!r}.") from None


def _parse_rule_args(args: list[str]) -> dict:
    """
    daily   HH:MM Title | sub | sub
    weekly  D,D,D HH:MM Title | ...   (0=Sunday..6=Saturday)
    monthly DAY HH:MM Title | ...
    """
    if len(args) < 3:
        raise RuleValidationError("Usage: <daily|weekly|monthly> [days|day] HH:MM Title | sub | sub")
    frequency = args[0].lower()
    rest = args[1:]
    kwargs: dict = {"frequency": frequency}
    if frequency == "weekly":
        try:
            kwargs["days_of_week"] = [int(d) for d in rest[0].split(",") if d]
        except ValueError:
            raise RuleValidationError("Weekly days must be like 1,3,5 (0=Sunday).") from None
        rest = rest[1:]
    elif frequency == "monthly":
        if not rest[0].isdigit():
            raise RuleValidationError("Monthly rules need a day of month (1..31).")
        kwargs["day_of_month"] = int(rest[0])
        rest = rest[1:]
    if not rest:
        raise RuleValidationError("Missing HH:MM time.")
    kwargs["time"] = rest[0]
    title, subs = _split_title(rest[1:])
    kwargs["title"] = title
    kwargs["sub_tasks"] = subs
    return kwargs


def _describe_rule(rule) -> str:
    when = rule.frequency.value
    if rule.days_of_week:
        when += " on " + ",".join(str(d) for d in rule.days_of_week)
    if rule.day_of_month is not None:
        when += f" on day {rule.day_of_month}"
    return f"{rule.id} | {rule.title} | {when} at {rule.time} | last: {_fmt_ms(rule.last_generated)}"


# ---- handlers ----


async def cmd_help(ctx: AppContext, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(ctx: AppContext, args: list[str]) -> str:
    s = ctx.store.state
    vp = ctx.viewport
    sync = ctx.sync.status.value if ctx.sync is not None else "disabled"
    alive = "DEAD" if s.is_plant_dead else f"alive until {_fmt_ms(s.death_time)}"
    return (
        "Status:\n"
        f"  Plant: {PLANTS.get(s.active_plant_id, s.active_plant_id)} ({plant_stage(s.points)}, {alive})\n"
        f"  Points: {s.points:g}\n"
        f"  Todos: {len(s.todos)}  Rules: {len(s.recurring_rules)}\n"
        f"  Viewport: {vp.width}x{vp.height} ({vp.mode.value})\n"
        f"  Sync: {sync}"
    )


async def cmd_add(ctx: AppContext, args: list[str]) -> str:
    """/add Title | subtask | subtask"""
    title, subs = _split_title(args)
    todo = actions.add_todo(
        ctx.store,
        title=title,
        sub_tasks=subs,
        viewport=ctx.viewport,
        now_ms=ctx.clock.now_ms(),
        rng=ctx.rng,
    )
    return f"Added {todo.id}: {todo.title} ({len(todo.sub_tasks)} subtasks)"


async def cmd_list(ctx: AppContext, args: list[str]) -> str:
    todos = ctx.store.state.todos
    if not todos:
        return "No todos."
    mode = ctx.viewport.mode
    lines = [f"Todos ({mode.value} positions):"]
    for i, t in enumerate(todos, start=1):
        done = sum(1 for s in t.sub_tasks if s.completed)
        p = t.placement.point_for(mode)
        pos = f"({p.x:.0f},{p.y:.0f})" if p is not None else "(-)"
        flags = []
        if t.is_recurring:
            flags.append(f"due {_fmt_ms(t.due_date)}")
        if t.is_converted:
            flags.append("converted")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        lines.append(f"{i}. {t.id} {t.title} {done}/{len(t.sub_tasks)} {pos} z={t.z_index}{suffix}")
        for j, s in enumerate(t.sub_tasks, start=1):
            lines.append(f"     {j}. [{'x' if s.completed else ' '}] {s.text}")
    return "\n".join(lines)


async def cmd_toggle(ctx: AppContext, args: list[str]) -> str:
    """/toggle <todo> <subtask number>"""
    if len(args) < 2 or not args[1].isdigit():
        return "Usage: /toggle <todo> <subtask number>"
    todo = _resolve_todo(ctx, args[0])
    if todo is None:
        return f"No such todo: {args[0]}"
    idx = int(args[1]) - 1
    if not 0 <= idx < len(todo.sub_tasks):
        return f"Todo {todo.id} has no subtask {args[1]}."
    updated = actions.toggle_subtask(ctx.store, todo.id, todo.sub_tasks[idx].id)
    if updated is not None and updated.is_completable:
        return f"All subtasks of {todo.id} done. Use /convert {todo.id} to feed the plant."
    return "OK."


async def cmd_convert(ctx: AppContext, args: list[str]) -> str:
    if not args:
        return "Usage: /convert <todo>"
    todo = _resolve_todo(ctx, args[0])
    if todo is None:
        return f"No such todo: {args[0]}"
    if not todo.is_completable:
        return "Finish every subtask first."
    if not await ctx.gamification.convert(todo.id):
        return "Already converted."
    s = ctx.store.state
    return f"Converted. Points: {s.points:g}, plant safe until {_fmt_ms(s.death_time)}."


async def cmd_delete(ctx: AppContext, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <todo>"
    todo = _resolve_todo(ctx, args[0])
    if todo is None or not actions.delete_todo(ctx.store, todo.id):
        return f"No such todo: {args[0]}"
    return f"Deleted {todo.id}."


async def cmd_focus(ctx: AppContext, args: list[str]) -> str:
    if not args:
        return "Usage: /focus <todo>"
    todo = _resolve_todo(ctx, args[0])
    if todo is None:
        return f"No such todo: {args[0]}"
    actions.focus_todo(ctx.store, todo.id)
    return "OK."


async def cmd_move(ctx: AppContext, args: list[str]) -> str:
    """/move <todo> <x> <y> (in the current view mode)"""
    if len(args) < 3:
        return "Usage: /move <todo> <x> <y>"
    todo = _resolve_todo(ctx, args[0])
    if todo is None:
        return f"No such todo: {args[0]}"
    try:
        point = Point(float(args[1]), float(args[2]))
    except ValueError:
        return "Coordinates must be numbers."
    actions.move_todo(ctx.store, todo.id, point, ctx.viewport.mode)
    return f"Moved {todo.id} to ({point.x:g},{point.y:g}) [{ctx.viewport.mode.value}]."


async def cmd_organize(ctx: AppContext, args: list[str]) -> str:
    moved = ctx.reconciler.run(manual=True)
    return f"Organized {moved} note(s)."


async def cmd_viewport(ctx: AppContext, args: list[str]) -> str:
    """/viewport <width> <height>"""
    if len(args) < 2 or not (args[0].isdigit() and args[1].isdigit()):
        vp = ctx.viewport
        return f"Viewport: {vp.width}x{vp.height} ({vp.mode.value}). Usage: /viewport <width> <height>"
    moved = ctx.reconciler.set_viewport(Viewport(int(args[0]), int(args[1])))
    return f"Viewport set ({ctx.viewport.mode.value}); repositioned {moved} note(s)."


async def cmd_rule_add(ctx: AppContext, args: list[str]) -> str:
    kwargs = _parse_rule_args(args)
    palette = ctx.store.state.settings.note_colors
    rule = build_rule(color=ctx.rng.choice(palette), **kwargs)
    rule, todo = create_rule(ctx.store, rule, now=ctx.clock.now(), viewport=ctx.viewport, rng=ctx.rng)
    reply = f"Rule {rule.id} saved."
    if todo is not None:
        reply += f" Due now: generated todo {todo.id}."
    return reply


async def cmd_rule_edit(ctx: AppContext, args: list[str]) -> str:
    """/rule-edit <rule id> <same syntax as /rule-add>"""
    if len(args) < 2:
        return "Usage: /rule-edit <rule id> <daily|weekly|monthly> ..."
    current = ctx.store.state.find_rule(args[0])
    if current is None:
        return f"No such rule: {args[0]}"
    kwargs = _parse_rule_args(args[1:])
    edited = build_rule(color=current.color, rule_id=current.id, **kwargs)
    rule = update_rule(ctx.store, edited)
    return f"Rule {rule.id} updated."


async def cmd_rules(ctx: AppContext, args: list[str]) -> str:
    rules = ctx.store.state.recurring_rules
    if not rules:
        return "No recurring rules."
    return "\n".join(["Recurring rules:", *(f"  {_describe_rule(r)}" for r in rules)])


async def cmd_rule_del(ctx: AppContext, args: list[str]) -> str:
    if not args:
        return "Usage: /rule-del <rule id>"
    if not delete_rule(ctx.store, args[0]):
        return f"No such rule: {args[0]}"
    return f"Rule {args[0]} deleted."


async def cmd_sync(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /sync        -> show status
    /sync push   -> push now (if changed)
    /sync pull   -> pull now (respects the cooldown)
    """
    if ctx.sync is None:
        return "Sync is disabled."
    if not args:
        return f"Sync status: {ctx.sync.status.value}"
    sub = args[0].lower()
    if sub == "push":
        if emit:
            with contextlib.suppress(Exception):
                emit("[SYNC] Pushing...")
        pushed = await ctx.sync.push()
        return f"Pushed: {pushed}. Status: {ctx.sync.status.value}"
    if sub == "pull":
        applied = await ctx.sync.pull()
        return f"Applied remote state: {applied}. Status: {ctx.sync.status.value}"
    return "Usage: /sync [push|pull]"


async def cmd_history(ctx: AppContext, args: list[str]) -> str:
    """/history [words] [--from YYYY-MM-DD] [--to YYYY-MM-DD]"""
    if ctx.remote is None:
        return "History needs the remote store (sync is disabled)."
    words: list[str] = []
    start: date | None = None
    end: date | None = None
    it = iter(args)
    for a in it:
        if a == "--from":
            start = _parse_date(next(it, ""))
        elif a == "--to":
            end = _parse_date(next(it, ""))
        else:
            words.append(a)
    try:
        records = await ctx.remote.get_history()
    except Exception as exc:
        ctx.report_remote_error(exc)
        return f"Could not load history: {exc}"
    found = filter_history(records, search=" ".join(words), start=start, end=end)
    if not found:
        return "No matching history."
    lines = [f"History ({len(found)}):"]
    for r in found:
        lines.append(f"  {_fmt_ms(r.get('convertedAt'))} {r.get('title', '')}")
    return "\n".join(lines)


async def cmd_plants(ctx: AppContext, args: list[str]) -> str:
    s = ctx.store.state
    lines = ["Plants:"]
    for plant_id, name in PLANTS.items():
        mark = "*" if plant_id == s.active_plant_id else ("+" if plant_id in s.adopted_plants else " ")
        lines.append(f"  {mark} {plant_id} - {name}")
    return "\n".join(lines)


async def cmd_adopt(ctx: AppContext, args: list[str]) -> str:
    if not args:
        return "Usage: /adopt <plant id>"
    state = adopt_plant(ctx.store, args[0].lower())
    return f"Active plant: {PLANTS[state.active_plant_id]}. Points left: {state.points:g}"


async def cmd_settings(ctx: AppContext, args: list[str]) -> str:
    """
    /settings                 -> show
    /settings glass on|off
    /settings opacity 0.4
    /settings effect sakura
    /settings colors #aaa,#bbb
    """
    if len(args) < 2:
        st = ctx.store.state.settings
        return (
            "Settings:\n"
            f"  glass: {'on' if st.glass_effect_enabled else 'off'} (opacity {st.glass_opacity:g})\n"
            f"  effect: {st.screen_effect.value}\n"
            f"  background: {st.custom_background or '-'}\n"
            f"  colors: {', '.join(st.note_colors)}"
        )
    key, value = args[0].lower(), args[1]
    if key == "glass":
        actions.update_settings(ctx.store, glass_effect_enabled=value.lower() in ("on", "1", "true", "yes"))
    elif key == "opacity":
        try:
            actions.update_settings(ctx.store, glass_opacity=float(value))
        except ValueError:
            return "Opacity must be a number between 0 and 1."
    elif key == "effect":
        actions.update_settings(ctx.store, screen_effect=value)
    elif key == "colors":
        actions.update_settings(ctx.store, note_colors=[c.strip() for c in value.split(",")])
    else:
        return f"Unknown setting: {key}"
    return "Settings updated."


async def cmd_background(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/background <image path> | /background off"""
    if not args:
        return "Usage: /background <image path> | /background off"
    if args[0].lower() == "off":
        actions.update_settings(ctx.store, custom_background=None)
        return "Background cleared."
    if ctx.remote is None:
        return "Uploading needs the remote store (sync is disabled)."
    path = Path(" ".join(args)).expanduser()
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        return f"Cannot read {path}: {e}"
    if emit:
        with contextlib.suppress(Exception):
            emit(f"[UPLOAD] Sending {len(data)} bytes...")
    try:
        await ctx.remote.upload_image(data, filename=path.name)
    except Exception as exc:
        ctx.report_remote_error(exc)
        return f"Upload failed: {exc}"
    # Timestamp doubles as a cache-buster for clients fetching the image.
    actions.update_settings(ctx.store, custom_background=str(ctx.clock.now_ms()))
    return "Background updated."


async def cmd_reset(ctx: AppContext, args: list[str]) -> str:
    """/reset confirm -> wipe remote data, the local copy and the in-memory state"""
    if not args or args[0].lower() != "confirm":
        return "This deletes everything. Type /reset confirm to proceed."
    deleted = 0
    if ctx.remote is not None:
        try:
            deleted = await ctx.remote.factory_reset()
        except Exception as exc:
            ctx.report_remote_error(exc)
            return f"Factory reset failed: {exc}"
    ctx.persistence.clear()
    ctx.store.replace(default_state(now_ms=ctx.clock.now_ms()), local=True)
    logger.info("Factory reset done (remote deleted=%s).", deleted)
    return f"Factory reset done. Remote records deleted: {deleted}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Plant, points, counts, viewport and sync status.")
registry.register("add", cmd_add, help_text="Add a todo: /add Title | subtask | subtask.")
registry.register("list", cmd_list, help_text="List todos with their subtasks.", aliases=["ls"])
registry.register("toggle", cmd_toggle, help_text="Toggle a subtask: /toggle <todo> <n>.")
registry.register("convert", cmd_convert, help_text="Feed a finished todo to the plant: /convert <todo>.")
registry.register("delete", cmd_delete, help_text="Delete a todo: /delete <todo>.", aliases=["rm"])
registry.register("focus", cmd_focus, help_text="Bring a note to the front: /focus <todo>.")
registry.register("move", cmd_move, help_text="Move a note: /move <todo> <x> <y>.")
registry.register("organize", cmd_organize, help_text="Re-lay out every note in a cascade.")
registry.register("viewport", cmd_viewport, help_text="Resize the viewport: /viewport <w> <h>.")
registry.register(
    "rule-add",
    cmd_rule_add,
    help_text="Add a recurring rule: /rule-add daily 09:00 Title | sub (weekly 1,3 / monthly 15).",
)
registry.register("rule-edit", cmd_rule_edit, help_text="Edit a rule: /rule-edit <id> <rule-add syntax>.")
registry.register("rules", cmd_rules, help_text="List recurring rules.")
registry.register("rule-del", cmd_rule_del, help_text="Delete a rule: /rule-del <id>.")
registry.register("sync", cmd_sync, help_text="Sync status / force: /sync [push|pull].")
registry.register("history", cmd_history, help_text="Converted todos: /history [words] [--from D] [--to D].")
registry.register("plants", cmd_plants, help_text="Plant catalogue (* active, + adopted).")
registry.register("adopt", cmd_adopt, help_text="Adopt or switch plant: /adopt <plant id>.")
registry.register("settings", cmd_settings, help_text="Show or change display settings.")
registry.register("background", cmd_background, help_text="Upload a background: /background <path> | off.")
registry.register("reset", cmd_reset, help_text="Factory reset: /reset confirm.")
