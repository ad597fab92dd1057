# tests/test_commands.py

from __future__ import annotations

import pytest

from taskbuddy.buddies.matching import NO_CANDIDATE_MESSAGE
from taskbuddy.cli.bootstrap import create_initial_state, stop_background_loops
from taskbuddy.cli.commands import CommandRegistry, registry
from taskbuddy.cli.main import _pair_at_startup
from taskbuddy.connectors.console_connector import render_reply, run_console_loop
from taskbuddy.core.errors import PermissionDenied, StorageFailure

from .fakes import FakeNotifier


@pytest.fixture()
def app(settings):
    return create_initial_state(settings=settings, notifier=FakeNotifier())


def _as(app, user_id: str) -> None:
    app.current_user = app.users.get(user_id)


@pytest.mark.asyncio
async def test_command_registry_routes_sync_and_async(app) -> None:
    reg = CommandRegistry()
    called = {"sync": 0, "async": 0}

    def h_sync(state, args):
        called["sync"] += 1
        return f"sync {args}"

    async def h_async(state, args):
        called["async"] += 1
        return "async"

    reg.register("a", h_sync, "a", aliases=["aa"])
    reg.register("b", h_async, "b")

    assert await reg.handle(app, "/a x") == "sync ['x']"
    assert await reg.handle(app, "/AA") == "sync []"
    assert await reg.handle(app, "/b") == "async"
    assert called == {"sync": 2, "async": 1}


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(app) -> None:
    reg = CommandRegistry()
    assert await reg.handle(app, "hello") is None
    assert "Empty command" in (await reg.handle(app, "/") or "")
    assert "Unknown command" in (await reg.handle(app, "/nope") or "")


@pytest.mark.asyncio
async def test_command_registry_turns_domain_errors_into_replies(app) -> None:
    reg = CommandRegistry()

    def denied(state, args):
        raise PermissionDenied("nope, not yours")

    def invalid(state, args):
        raise ValueError("bad input")

    reg.register("x", denied, "x")
    reg.register("y", invalid, "y")

    assert await reg.handle(app, "/x") == "nope, not yours"
    assert await reg.handle(app, "/y") == "Error: bad input"


def test_bootstrap_seeds_users_and_current_user(app, settings) -> None:
    assert app.current_user.id == "user1"
    assert [u.id for u in app.users.list_users()] == ["user1", "user2", "user3"]
    assert settings.db_path.exists()
    assert "/tick" in registry.build_help()


def test_startup_pairing_pairs_the_acting_user(app) -> None:
    _pair_at_startup(app)

    [rel] = app.buddy_requests.relations("user1")
    assert rel.is_active


def test_startup_pairing_survives_storage_failure(app, monkeypatch) -> None:
    def broken(user):
        raise StorageFailure("database is locked")

    monkeypatch.setattr(app.matching, "ensure_paired", broken)

    _pair_at_startup(app)

    assert app.buddy_requests.relations("user1") == []


@pytest.mark.asyncio
async def test_buddy_task_and_chat_flow(app) -> None:
    assert "Test User 1" in await registry.handle(app, "/whoami")
    assert "user3: Test User 3" in await registry.handle(app, "/users")
    assert "no buddies" in await registry.handle(app, "/buddies")

    assert "Buddy request sent" in await registry.handle(app, "/request user2@test.com")

    _as(app, "user2")
    pending = await registry.handle(app, "/requests")
    assert "from Test User 1" in pending
    req_id = app.buddy_requests.pending_requests("user2")[0].id
    assert await registry.handle(app, f"/accept {req_id[:6]}") == "You are now buddies with Test User 1."

    added = await registry.handle(app, "/add Run 5k")
    assert added.startswith("Added")
    task_id = app.tasks.own_tasks("user2")[0].id

    _as(app, "user1")
    listing = await registry.handle(app, "/tasks")
    assert "Run 5k (owner: user2)" in listing
    assert "Only the task owner" in await registry.handle(app, f"/done {task_id[:8]}")
    assert await registry.handle(app, f"/say {task_id[:8]} go go go") == "Sent."
    assert "Cheered on" in await registry.handle(app, f"/attempt {task_id[:8]}")

    _as(app, "user2")
    assert "Unread messages: 2" in await registry.handle(app, "/unread")
    convo = await registry.handle(app, f"/chat {task_id[:8]}")
    assert "Test User 1: go go go" in convo
    assert await registry.handle(app, "/unread") == "No unread messages."
    assert "marked done" in await registry.handle(app, f"/done {task_id[:8]}")


@pytest.mark.asyncio
async def test_task_and_reminder_commands(app) -> None:
    await registry.handle(app, "/add Tidy up")
    task_id = app.tasks.own_tasks("user1")[0].id
    ref = task_id[:8]

    assert "Added sub-task" in await registry.handle(app, f"/split {ref} Desk")
    assert "Best reminder time" in await registry.handle(app, f"/reminder {ref}")
    assert "worked" in await registry.handle(app, f"/remind-ok {ref}")
    assert "missed" in await registry.handle(app, f"/remind-miss {ref}")
    assert len(app.estimator.history("user1", task_id).unsuccessful_times) == 1
    assert "1 so far" in await registry.handle(app, f"/attempt {ref}")
    assert "not found" in await registry.handle(app, "/done zzzz")
    assert (await registry.handle(app, "/add")).startswith("Error: usage")
    assert "Deleted" in await registry.handle(app, f"/delete {ref}")
    assert await registry.handle(app, "/tasks") == "No tasks yet. Use /add <title>."


@pytest.mark.asyncio
async def test_login_switches_user_and_restarts_loops(app) -> None:
    await registry.handle(app, "/pair")
    assert len(app.background) == 0

    reply = await registry.handle(app, "/login user3")
    try:
        assert reply.startswith("Signed in as Test User 3.")
        assert app.current_user.id == "user3"
        assert len(app.background) == 2
    finally:
        await stop_background_loops(app)

    assert app.background == []
    # user1 took one of user2/user3 at /pair; whoever is left may or may not be free.
    assert reply.endswith(NO_CANDIDATE_MESSAGE) or "paired with" in reply.lower()


def test_render_reply_indents_continuation_lines() -> None:
    out = render_reply("Tasks:\n[ ] abc Run").splitlines()
    assert out[0].endswith("] Tasks:")
    assert out[1] == " " * 11 + "[ ] abc Run"


@pytest.mark.asyncio
async def test_console_loop_runs_commands_until_exit(app, monkeypatch, capsys) -> None:
    lines = iter(["", "/whoami", "hello", "/exit", "/never-reached"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))

    await run_console_loop(app)

    out = capsys.readouterr().out
    assert "You are Test User 1" in out
    assert "Commands start with '/'" in out
    assert "never-reached" not in out


@pytest.mark.asyncio
async def test_accepting_a_second_buddy_points_at_activate(app) -> None:
    await registry.handle(app, "/request user2@test.com")
    _as(app, "user2")
    await registry.handle(app, f"/accept {app.buddy_requests.pending_requests('user2')[0].id}")

    _as(app, "user3")
    await registry.handle(app, "/request user1@test.com")
    _as(app, "user1")
    reply = await registry.handle(app, f"/accept {app.buddy_requests.pending_requests('user1')[0].id}")

    assert reply == "You are now buddies with Test User 3. Use /activate user3 to share tasks with them."
    assert await registry.handle(app, "/activate user3") == "Test User 3 is now your active buddy."
