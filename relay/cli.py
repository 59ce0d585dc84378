"""relay CLI: presence and messaging between agents in tmux."""

from __future__ import annotations

import asyncio
import logging
import os

import typer
import yaml

from relay.core.models import SessionInfo, utcnow
from relay.lib import config, errors, output, paths
from relay.node import Node

errors.install_error_handler("relay")

log = logging.getLogger(__name__)

app = typer.Typer(invoke_without_command=True, no_args_is_help=False, add_completion=False)
config_app = typer.Typer(no_args_is_help=True)
app.add_typer(config_app, name="config", help="Inspect or initialize config.yaml")


@app.callback(invoke_without_command=True)
def main_command(
    ctx: typer.Context,
    identity: str = typer.Option(None, "--as", help="Agent id to act as (or RELAY_AGENT_ID)."),
    name: str = typer.Option(None, "--name", help="Agent name (or RELAY_AGENT_NAME)."),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output in JSON format."),
    quiet_output: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
):
    """Relay: filesystem-backed agent presence and messaging"""
    output.set_flags(ctx, json_output, quiet_output)
    ctx.obj["identity"] = identity or os.environ.get("RELAY_AGENT_ID")
    ctx.obj["name"] = name

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


def _node(ctx: typer.Context, required: bool = True) -> Node:
    identity = ctx.obj.get("identity")
    if required and not identity:
        raise ValueError("No agent identity. Pass --as <agent-id> or set RELAY_AGENT_ID.")
    return Node(name=ctx.obj.get("name"), agent_id=identity)


def _fail(exc: Exception, ctx: typer.Context) -> typer.Exit:
    if os.environ.get("RELAY_DEBUG"):
        errors.log_error("relay", ctx.obj.get("identity"), exc, ctx.info_name or "")
    output.output_json({"status": "error", "message": str(exc)}, ctx) or output.echo_if_output(
        f"❌ {exc}", ctx
    )
    return typer.Exit(code=1)


@app.command()
def register(
    ctx: typer.Context,
    session: str = typer.Argument(..., help="tmux session this agent lives in"),
):
    """Register this agent for inter-agent communication."""
    try:
        node = _node(ctx, required=False)
        result = asyncio.run(node.register_agent(session))
        output.output_json(
            {"status": "success", "agent_id": node.agent_id, "name": node.name}, ctx
        ) or output.echo_if_output(result, ctx)
    except Exception as e:
        raise _fail(e, ctx) from e


@app.command()
def unregister(ctx: typer.Context):
    """Remove this agent's presence record."""
    try:
        result = asyncio.run(_node(ctx).unregister_agent())
        output.output_json({"result": result}, ctx) or output.echo_if_output(result, ctx)
        if result.startswith("Failed"):
            raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except Exception as e:
        raise _fail(e, ctx) from e


@app.command()
def agents(ctx: typer.Context):
    """List registered agents with their derived online/offline status."""
    try:
        found = asyncio.run(_node(ctx, required=False).list_active_agents())
        if output.output_json([a.to_dict() for a in found], ctx):
            return
        if not found:
            output.echo_if_output("No agents registered", ctx)
            return
        now = utcnow()
        output.echo_if_output(f"AGENTS ({len(found)}):", ctx)
        for agent in found:
            output.echo_if_output(f"  {output.format_agent_row(agent, now)}", ctx)
    except Exception as e:
        raise _fail(e, ctx) from e


@app.command()
def info(ctx: typer.Context, agent_id: str = typer.Argument(..., help="Agent id")):
    """Show one agent's record."""
    try:
        agent = asyncio.run(_node(ctx, required=False).get_agent_info(agent_id))
        if agent is None:
            output.output_json(None, ctx) or output.echo_if_output(
                f"Agent {agent_id} not found", ctx
            )
            raise typer.Exit(code=1)
        output.output_json(agent.to_dict(), ctx) or output.echo_if_output(
            output.format_agent_row(agent, utcnow()), ctx
        )
    except typer.Exit:
        raise
    except Exception as e:
        raise _fail(e, ctx) from e


@app.command()
def send(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Target agent id"),
    content: str = typer.Argument(..., help="Message content"),
):
    """Send a message to another agent."""
    try:
        result = asyncio.run(_node(ctx).send_message(target, content))
        output.output_json({"result": result}, ctx) or output.echo_if_output(result, ctx)
    except Exception as e:
        raise _fail(e, ctx) from e


@app.command()
def command(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Target agent id"),
    cmd: str = typer.Argument(..., help="Command text"),
    session: str = typer.Option(None, "--session", help="Explicit tmux session"),
    window: str = typer.Option(None, "--window", help="Window within --session"),
    pane: str = typer.Option(None, "--pane", help="Explicit pane target"),
):
    """Send a command to another agent's terminal."""
    try:
        if (window or pane) and not session:
            raise ValueError("--window and --pane require --session")
        session_info = SessionInfo(session, window, pane) if session else None
        result = asyncio.run(_node(ctx).send_command(target, cmd, session_info))
        output.output_json({"result": result}, ctx) or output.echo_if_output(result, ctx)
    except Exception as e:
        raise _fail(e, ctx) from e


@app.command()
def inbox(ctx: typer.Context):
    """Show messages addressed to this agent, oldest first."""
    try:
        messages = asyncio.run(_node(ctx).get_incoming_messages())
        if output.output_json([m.to_dict() for m in messages], ctx):
            return
        if not messages:
            output.echo_if_output("Inbox empty", ctx)
            return
        output.echo_if_output(f"INBOX ({len(messages)}):", ctx)
        for message in messages:
            output.echo_if_output(f"  {output.format_message_row(message)}", ctx)
    except Exception as e:
        raise _fail(e, ctx) from e


@app.command()
def process(ctx: typer.Context):
    """Process queued commands addressed to this agent."""
    try:
        results = asyncio.run(_node(ctx).process_incoming_commands())
        if output.output_json(results, ctx):
            return
        if not results:
            output.echo_if_output("No commands to process", ctx)
        for line in results:
            output.echo_if_output(line, ctx)
    except Exception as e:
        raise _fail(e, ctx) from e


@app.command()
def history(
    ctx: typer.Context,
    target: str = typer.Argument(None, help="Also include messages involving this agent"),
    limit: int = typer.Option(None, "--limit", "-n", help="Maximum messages to show"),
):
    """Show message history, newest first."""
    try:
        messages = asyncio.run(_node(ctx).get_message_history(target, limit))
        if output.output_json([m.to_dict() for m in messages], ctx):
            return
        if not messages:
            output.echo_if_output("No messages", ctx)
            return
        for message in messages:
            output.echo_if_output(output.format_message_row(message), ctx)
    except Exception as e:
        raise _fail(e, ctx) from e


@app.command()
def clear(
    ctx: typer.Context,
    hours: float = typer.Option(None, "--hours", help="Delete messages older than this"),
):
    """Delete old message files."""
    result = asyncio.run(_node(ctx, required=False).clear_old_messages(hours))
    output.output_json({"result": result}, ctx) or output.echo_if_output(result, ctx)
    if result.startswith("Failed"):
        raise typer.Exit(code=1)


@app.command()
def heartbeat(ctx: typer.Context):
    """Refresh this agent's last-seen timestamp once."""
    try:
        touched = asyncio.run(_node(ctx).update_heartbeat())
        output.output_json({"touched": touched}, ctx) or output.echo_if_output(
            "Heartbeat updated" if touched else "No record to refresh (not registered)", ctx
        )
    except Exception as e:
        raise _fail(e, ctx) from e


async def _serve(
    node: Node,
    session: str | None,
    poll: float,
    unregister_on_exit: bool,
    reregister: bool,
) -> None:
    if session:
        log.info(await node.register_agent(session))

    async def beat() -> None:
        if await node.update_heartbeat():
            return
        if reregister and session:
            log.warning(f"Record for {node.agent_id} vanished, re-registering")
            await node.register_agent(session)

    hb = node.heartbeat()
    hb.start()
    try:
        while True:
            if poll > 0:
                try:
                    for line in await node.process_incoming_commands():
                        log.info(line)
                except Exception as e:
                    log.error(f"Command polling failed: {e}", exc_info=True)
                await asyncio.sleep(poll)
            else:
                await asyncio.sleep(hb.interval)
    finally:
        await hb.stop()
        if unregister_on_exit:
            log.info(await node.unregister_agent())


@app.command()
def serve(
    ctx: typer.Context,
    session: str = typer.Option(None, "--session", help="Register in this tmux session first"),
    poll: float = typer.Option(
        0, "--poll", help="Process incoming commands every N seconds (0 disables)"
    ),
    unregister_on_exit: bool = typer.Option(
        False, "--unregister-on-exit", help="Remove the presence record on shutdown"
    ),
    reregister: bool = typer.Option(
        False, "--reregister", help="Re-register when the heartbeat finds no record"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Run the heartbeat (and optional command polling) until interrupted."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO, format="[relay] %(message)s"
    )
    node = _node(ctx, required=not session)
    try:
        asyncio.run(_serve(node, session, poll, unregister_on_exit, reregister))
    except KeyboardInterrupt:
        log.info("Shutting down")


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Print the effective configuration."""
    try:
        cfg = config.load_config()
    except Exception as e:
        raise _fail(e, ctx) from e
    output.output_json(cfg, ctx) or typer.echo(yaml.safe_dump(cfg, sort_keys=False).rstrip())


@config_app.command("init")
def config_init(ctx: typer.Context):
    """Write default config.yaml if it does not exist."""
    created = config.init_config()
    path = paths.config_file()
    output.echo_if_output(
        f"Created {path}" if created else f"Config already exists at {path}", ctx
    )


def main() -> None:
    """Entry point for relay command."""
    app()
