"""CLI output formatting and helpers."""

import json
from datetime import datetime

import typer

from relay.core.models import Agent, Message, parse_timestamp
from relay.lib.uuid7 import short_id


def set_flags(ctx: typer.Context, json_output: bool = False, quiet_output: bool = False) -> None:
    if ctx.obj is None or not isinstance(ctx.obj, dict):
        ctx.obj = {}
    ctx.obj["json_output"] = json_output
    ctx.obj["quiet_output"] = quiet_output


def output_json(data, ctx: typer.Context) -> bool:
    """Output data as JSON if requested. Returns True if output, False otherwise."""
    if ctx.obj and ctx.obj.get("json_output"):
        typer.echo(json.dumps(data, indent=2))
        return True
    return False


def should_output(ctx: typer.Context) -> bool:
    return not (ctx.obj and ctx.obj.get("quiet_output"))


def echo_if_output(msg: str, ctx: typer.Context) -> None:
    if should_output(ctx):
        typer.echo(msg)


def format_local_time(timestamp: str) -> str:
    """Format ISO timestamp as readable local time."""
    try:
        return parse_timestamp(timestamp).astimezone().strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, TypeError):
        return timestamp


def format_agent_row(agent: Agent, now: datetime) -> str:
    marker = "●" if agent.status == "online" else "○"
    return (
        f"{marker} {agent.name:<20} {agent.id}  session={agent.session}  "
        f"seen {ago(agent.last_seen_at, now)}"
    )


def format_message_row(message: Message) -> str:
    when = format_local_time(message.timestamp)
    header = f"[{when}] {message.type:<8} {short_id(message.sender)} -> {short_id(message.recipient)}"
    return f"{header}: {message.content}"


def ago(moment: datetime, now: datetime) -> str:
    seconds = int((now - moment).total_seconds())
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    return f"{seconds // 3600}h ago"
