# src/taskbuddy/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..buddies.relations import active_relation
from ..chat.conversations import conversation_key
from ..core.errors import BuddyError, NotFoundPrecondition
from ..core.models import Task, User
from ..core.state import AppState
from ..tasks.task_store import find_in_tree
from ..logging_setup import set_log_user
from .bootstrap import start_background_loops, stop_background_loops

CommandHandler = Callable[[AppState, list[str]], str | Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tasks, ...)."""

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

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Domain errors (BuddyError, ValueError) become the reply text.
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
            result = handler(state, args)
            if inspect.isawaitable(result):
                result = await result
        except BuddyError as e:
            logger.info("/%s refused: %s", name, e)
            return str(e)
        except ValueError as e:
            return f"Error: {e}"
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")


def _short(task_id: str) -> str:
    return task_id[:8]


def _resolve_task(state: AppState, ref: str) -> Task:
    """Find a visible task by id or unique id prefix."""
    tasks = state.tasks.visible_tasks(state.current_user.id)
    exact = find_in_tree(tasks, ref)
    if exact is not None:
        return exact

    matches = [t for root in tasks for t in root.iter_tree() if t.id.startswith(ref)]
    if not matches:
        raise NotFoundPrecondition(f"Task {ref!r} not found.")
    if len(matches) > 1:
        raise ValueError(f"task reference {ref!r} is ambiguous")
    return matches[0]


def _chat_partner(state: AppState, task: Task) -> str | None:
    me = state.current_user.id
    if task.owner_id != me:
        return task.owner_id
    if task.shared_with:
        return task.shared_with[0]
    rel = active_relation(state.buddy_requests.relations(me))
    return rel.user_id if rel else None


def _render_tasks(tasks: list[Task], me: str, depth: int = 0) -> list[str]:
    lines: list[str] = []
    for t in tasks:
        mark = "x" if t.completed else " "
        who = "" if t.owner_id == me else f" (owner: {t.owner_id})"
        extra = f" attempts={t.attempts}" if t.attempts else ""
        lines.append(f"{'  ' * depth}[{mark}] {_short(t.id)} {t.title}{who}{extra}")
        lines.extend(_render_tasks(t.sub_tasks, me, depth + 1))
    return lines


def _need(args: list[str], n: int, usage: str) -> None:
    if len(args) < n:
        raise ValueError(f"usage: {usage}")


# ---- session ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_whoami(state: AppState, args: list[str]) -> str:
    u = state.current_user
    rel = active_relation(state.buddy_requests.relations(u.id))
    buddy = f"{rel.name} ({rel.user_id})" if rel else "none"
    return f"You are {u.name} <{u.email}> [{u.id}]. Active buddy: {buddy}."


async def cmd_login(state: AppState, args: list[str]) -> str:
    """/login <user_id> -> act as another registered user."""
    _need(args, 1, "/login <user_id>")
    user = state.users.get(args[0])
    if user is None:
        raise NotFoundPrecondition(f"No user with id {args[0]!r}.")

    await stop_background_loops(state)
    state.current_user = user
    set_log_user(user.id)
    outcome = state.matching.ensure_paired(user)
    start_background_loops(state)
    return f"Signed in as {user.name}. {outcome.message}"


def cmd_users(state: AppState, args: list[str]) -> str:
    lines = ["Registered users:"]
    for u in state.users.list_users():
        lines.append(f"  {u.id}: {u.name} <{u.email}>")
    return "\n".join(lines)


def cmd_register(state: AppState, args: list[str]) -> str:
    """/register <id> <email> <name...>"""
    _need(args, 3, "/register <id> <email> <name>")
    user = state.users.register(User(id=args[0], email=args[1], name=" ".join(args[2:])))
    return f"Registered {user.name} ({user.id})."


# ---- buddies ----


def cmd_pair(state: AppState, args: list[str]) -> str:
    return state.matching.ensure_paired(state.current_user).message


def cmd_buddies(state: AppState, args: list[str]) -> str:
    relations = state.buddy_requests.relations(state.current_user.id)
    if not relations:
        return "You have no buddies yet. Use /pair or /request <email>."
    lines = ["Your buddies:"]
    for rel in relations:
        flag = " *active*" if rel.is_active else ""
        lines.append(f"  {rel.user_id}: {rel.name} <{rel.email}> since {_fmt_ts(rel.since)}{flag}")
    return "\n".join(lines)


def cmd_request(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/request <email>")
    req = state.buddy_requests.send_request(state.current_user, args[0])
    return f"Buddy request sent to {args[0]} (id {_short(req.id)})."


def cmd_requests(state: AppState, args: list[str]) -> str:
    me = state.current_user.id
    pending = state.buddy_requests.pending_requests(me)
    if not pending:
        return "No pending buddy requests."
    lines = ["Pending buddy requests:"]
    for req in pending:
        direction = "from" if req.receiver_id == me else "to"
        other = req.sender_name if req.receiver_id == me else req.receiver_id
        lines.append(f"  {_short(req.id)} {direction} {other} ({_fmt_ts(req.created_at)})")
    return "\n".join(lines)


def _resolve_request_id(state: AppState, ref: str) -> str:
    for req in state.buddy_requests.pending_requests(state.current_user.id):
        if req.id == ref or req.id.startswith(ref):
            return req.id
    raise NotFoundPrecondition(f"Buddy request {ref!r} not found.")


def cmd_accept(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/accept <request_id>")
    rel = state.buddy_requests.respond(
        state.current_user, _resolve_request_id(state, args[0]), accept=True
    )
    if rel is None:
        return "Buddy request could not be accepted."
    if not rel.is_active:
        return f"You are now buddies with {rel.name}. Use /activate {rel.user_id} to share tasks with them."
    return f"You are now buddies with {rel.name}."


def cmd_reject(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/reject <request_id>")
    state.buddy_requests.respond(state.current_user, _resolve_request_id(state, args[0]), accept=False)
    return "Buddy request rejected."


def cmd_unpair(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/unpair <buddy_id>")
    state.buddy_requests.remove_buddy(state.current_user.id, args[0])
    return f"Removed {args[0]} from your buddies."


def cmd_activate(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/activate <buddy_id>")
    rel = state.buddy_requests.set_active_buddy(state.current_user.id, args[0])
    return f"{rel.name} is now your active buddy."


# ---- tasks ----


def cmd_tasks(state: AppState, args: list[str]) -> str:
    me = state.current_user.id
    tasks = state.tasks.visible_tasks(me)
    if not tasks:
        return "No tasks yet. Use /add <title>."
    return "\n".join(["Tasks:"] + _render_tasks(tasks, me))


async def cmd_add(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/add <title>")
    task = await state.tasks.create_task(state.current_user, " ".join(args))
    return f"Added {_short(task.id)} {task.title!r}. Reminder at {_fmt_ts(task.notification_time)}."


def cmd_done(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/done <task>")
    task = state.tasks.toggle_complete(state.current_user.id, _resolve_task(state, args[0]).id)
    return f"{task.title!r} marked {'done' if task.completed else 'not done'}."


def cmd_delete(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/delete <task>")
    task = state.tasks.delete_task(state.current_user.id, _resolve_task(state, args[0]).id)
    return f"Deleted {task.title!r}."


def cmd_split(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/split <task> <sub-task title>")
    parent = _resolve_task(state, args[0])
    sub = state.tasks.add_subtask(state.current_user.id, parent.id, " ".join(args[1:]))
    return f"Added sub-task {_short(sub.id)} {sub.title!r} under {parent.title!r}."


async def cmd_attempt(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/attempt <task>")
    task = await state.tasks.record_attempt(state.current_user, _resolve_task(state, args[0]).id)
    if task.owner_id == state.current_user.id:
        return f"Attempt recorded for {task.title!r} ({task.attempts} so far)."
    return f"Cheered on {task.title!r}."


# ---- chat ----


async def cmd_chat(state: AppState, args: list[str]) -> str:
    """/chat <task> -> show the conversation about a task and mark it read."""
    _need(args, 1, "/chat <task>")
    me = state.current_user.id
    task = _resolve_task(state, args[0])
    partner = _chat_partner(state, task)
    if partner is None:
        return "No buddy to chat with about this task."

    key = conversation_key(me, partner, task.id)
    messages = await state.tracker.open_conversation(key, me, partner)
    if not messages:
        return f"No messages about {task.title!r} yet."
    lines = [f"Conversation about {task.title!r}:"]
    for m in reversed(messages):
        lines.append(f"  [{_fmt_ts(m.timestamp)}] {m.sender_name}: {m.text}")
    return "\n".join(lines)


async def cmd_say(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/say <task> <text>")
    task = _resolve_task(state, args[0])
    partner = _chat_partner(state, task)
    if partner is None:
        return "No buddy to chat with about this task."
    await state.tracker.send(
        state.current_user,
        partner,
        task_id=task.id,
        task_title=task.title,
        text=" ".join(args[1:]),
    )
    return "Sent."


def cmd_unread(state: AppState, args: list[str]) -> str:
    counts = state.tracker.unread_counts_for(state.current_user.id)
    if not counts:
        return "No unread messages."
    lines = [f"Unread messages: {sum(counts.values())}"]
    for key, n in sorted(counts.items()):
        lines.append(f"  {key}: {n}")
    return "\n".join(lines)


# ---- reminders ----


def cmd_reminder(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/reminder <task>")
    task = _resolve_task(state, args[0])
    when = state.estimator.best_time(state.current_user.id, task.id)
    return f"Best reminder time for {task.title!r}: {when.strftime('%Y-%m-%d %H:%M')}."


def cmd_remind_ok(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/remind-ok <task>")
    task = _resolve_task(state, args[0])
    state.estimator.record_success(state.current_user.id, task.id, datetime.now().timestamp())
    return f"Noted: reminder for {task.title!r} worked."


def cmd_remind_miss(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/remind-miss <task>")
    task = _resolve_task(state, args[0])
    state.estimator.record_failure(state.current_user.id, task.id, datetime.now().timestamp())
    return f"Noted: reminder for {task.title!r} was missed."


# ---- engagement ----


async def cmd_tick(state: AppState, args: list[str]) -> str:
    """Run one engagement pass now instead of waiting for the loop."""
    sent = await state.monitor.tick(state.current_user)
    if not sent:
        return "Nothing to send."
    return "\n".join(f"Sent {n.kind.value} about {n.task.title!r}." for n in sent)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("whoami", cmd_whoami, help_text="Show the acting user and active buddy.")
registry.register("login", cmd_login, help_text="Act as another user: /login <user_id>.")
registry.register("users", cmd_users, help_text="List registered users.")
registry.register("register", cmd_register, help_text="Register a user: /register <id> <email> <name>.")
registry.register("pair", cmd_pair, help_text="Pair with a random available user.")
registry.register("buddies", cmd_buddies, help_text="List your buddies.")
registry.register("request", cmd_request, help_text="Send a buddy request: /request <email>.")
registry.register("requests", cmd_requests, help_text="List pending buddy requests.")
registry.register("accept", cmd_accept, help_text="Accept a buddy request: /accept <id>.")
registry.register("reject", cmd_reject, help_text="Reject a buddy request: /reject <id>.")
registry.register("unpair", cmd_unpair, help_text="Remove a buddy: /unpair <buddy_id>.")
registry.register("activate", cmd_activate, help_text="Switch active buddy: /activate <buddy_id>.")
registry.register("tasks", cmd_tasks, help_text="List your tasks and your buddy's.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Create a task: /add <title>.")
registry.register("done", cmd_done, help_text="Toggle completion: /done <task>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <task>.", aliases=["rm"])
registry.register("split", cmd_split, help_text="Add a sub-task: /split <task> <title>.")
registry.register("attempt", cmd_attempt, help_text="Record an attempt or cheer one: /attempt <task>.")
registry.register("chat", cmd_chat, help_text="Open the conversation about a task: /chat <task>.")
registry.register("say", cmd_say, help_text="Message your buddy about a task: /say <task> <text>.")
registry.register("unread", cmd_unread, help_text="Show unread message counts.")
registry.register("reminder", cmd_reminder, help_text="Show the best reminder time: /reminder <task>.")
registry.register("remind-ok", cmd_remind_ok, help_text="Record a reminder that worked: /remind-ok <task>.")
registry.register("remind-miss", cmd_remind_miss, help_text="Record a missed reminder: /remind-miss <task>.")
registry.register("tick", cmd_tick, help_text="Run one engagement pass now.")
