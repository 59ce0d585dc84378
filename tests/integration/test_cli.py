import asyncio
import json

import pytest
from typer.testing import CliRunner

from relay import cli, node
from relay.node import Node

runner = CliRunner()


async def _wait_for(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition never became true")


@pytest.fixture
def fake_tmux(monkeypatch, make_terminal):
    terminal = make_terminal(sessions={"alpha", "beta"})
    monkeypatch.setattr(node, "Tmux", lambda timeout=None: terminal)
    return terminal


def _invoke(*args, env=None):
    return runner.invoke(cli.app, list(args), env=env)


def test_no_args_shows_help(test_relay):
    result = _invoke()

    assert result.exit_code == 0
    assert "Usage" in result.stdout


def test_register_list_unregister(test_relay, fake_tmux):
    result = _invoke("--as", "cli-a", "--name", "frontend", "register", "alpha")
    assert result.exit_code == 0
    assert 'Agent "frontend" registered with ID: cli-a' in result.stdout

    listed = _invoke("--json", "agents")
    agents = json.loads(listed.stdout)
    assert [(a["id"], a["status"]) for a in agents] == [("cli-a", "online")]

    result = _invoke("--as", "cli-a", "unregister")
    assert result.exit_code == 0
    assert "unregistered successfully" in result.stdout

    result = _invoke("--as", "cli-a", "unregister")
    assert result.exit_code == 1


def test_identity_from_env(test_relay, fake_tmux):
    result = _invoke("heartbeat", env={"RELAY_AGENT_ID": "env-agent"})

    assert result.exit_code == 0
    assert "not registered" in result.stdout


def test_commands_requiring_identity_fail_without_it(test_relay, fake_tmux, monkeypatch):
    monkeypatch.delenv("RELAY_AGENT_ID", raising=False)

    result = _invoke("inbox")

    assert result.exit_code == 1
    assert "No agent identity" in result.stdout


def test_send_and_inbox(test_relay, fake_tmux):
    _invoke("--as", "cli-b", "register", "beta")

    sent = _invoke("--as", "cli-a", "send", "cli-b", "hello")
    assert sent.exit_code == 0
    assert "Message sent to agent cli-b in tmux target beta:0" in sent.stdout

    inbox = _invoke("--as", "cli-b", "--json", "inbox")
    messages = json.loads(inbox.stdout)
    assert [(m["from"], m["content"]) for m in messages] == [("cli-a", "hello")]


def test_command_process_and_history(test_relay, fake_tmux):
    result = _invoke(
        "--as", "cli-a", "command", "cli-b", "make", "--session", "alpha", "--window", "1"
    )
    assert "Command sent to agent cli-b in tmux target alpha:1" in result.stdout

    processed = _invoke("--as", "cli-b", "process")
    assert "Processed command from cli-a: make" in processed.stdout

    history = _invoke("--as", "cli-a", "--json", "history")
    entries = json.loads(history.stdout)
    assert [e["type"] for e in entries] == ["response"]


def test_command_window_without_session_rejected(test_relay, fake_tmux):
    result = _invoke("--as", "cli-a", "command", "cli-b", "make", "--window", "1")

    assert result.exit_code == 1
    assert "require --session" in result.stdout


def test_info_unknown_agent(test_relay, fake_tmux):
    result = _invoke("info", "ghost")

    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_clear_reports_count(test_relay, fake_tmux):
    result = _invoke("clear", "--hours", "1")

    assert result.exit_code == 0
    assert "Deleted 0 old messages" in result.stdout


def test_config_init_and_show(test_relay):
    (test_relay / "config.yaml").unlink()

    created = _invoke("config", "init")
    assert "Created" in created.stdout

    shown = _invoke("--json", "config", "show")
    assert json.loads(shown.stdout)["heartbeat_interval_seconds"] == 30


@pytest.mark.asyncio
async def test_serve_registers_beats_and_unregisters(test_relay, make_terminal):
    worker = Node(name="svc", agent_id="svc-1", terminal=make_terminal(sessions={"alpha"}))
    (test_relay / "config.yaml").write_text(
        "settle_delay_seconds: 0\nheartbeat_interval_seconds: 0.01\n"
    )
    from relay.lib import config

    config.clear_cache()

    task = asyncio.create_task(cli._serve(worker, "alpha", 0.01, True, False))
    await _wait_for((test_relay / "agents" / "svc-1.json").exists)
    await asyncio.sleep(0.05)
    assert (await worker.get_agent_info("svc-1")).status == "online"

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert await worker.get_agent_info("svc-1") is None


@pytest.mark.asyncio
async def test_serve_reregisters_when_record_vanishes(test_relay, make_terminal):
    worker = Node(name="svc", agent_id="svc-2", terminal=make_terminal(sessions={"alpha"}))
    (test_relay / "config.yaml").write_text(
        "settle_delay_seconds: 0\nheartbeat_interval_seconds: 0.01\n"
    )
    from relay.lib import config

    config.clear_cache()

    task = asyncio.create_task(cli._serve(worker, "alpha", 0, False, True))
    record = test_relay / "agents" / "svc-2.json"
    await _wait_for(record.exists)
    record.unlink()
    await _wait_for(record.exists)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert await worker.get_agent_info("svc-2") is not None


@pytest.mark.asyncio
async def test_serve_keeps_polling_after_a_failed_pass(test_relay, make_terminal, monkeypatch):
    worker = Node(name="svc", agent_id="svc-3", terminal=make_terminal(sessions={"alpha"}))
    passes = []

    async def flaky_process():
        passes.append(len(passes))
        if len(passes) == 1:
            raise OSError("messages directory unavailable")
        return []

    monkeypatch.setattr(worker, "process_incoming_commands", flaky_process)

    task = asyncio.create_task(cli._serve(worker, "alpha", 0.01, False, False))
    await _wait_for(lambda: len(passes) >= 3)
    assert not task.done()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
