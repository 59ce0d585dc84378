"""Message operations: send, receive, process commands, history, pruning."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

from relay.core.models import Message, MessageType, SendResult, SessionInfo, to_timestamp, utcnow
from relay.lib import store
from relay.lib.paths import MESSAGES
from relay.lib.uuid7 import uuid7

from . import delivery
from .delivery import Terminal

log = logging.getLogger(__name__)

Executor = Callable[[Message], Awaitable[str]]


def _from_record(data: dict) -> Message | None:
    try:
        return Message.from_dict(data)
    except ValueError as e:
        log.debug(f"Skipping malformed message record {data.get('id')!r}: {e}")
        return None


async def _all_messages() -> list[Message]:
    messages = []
    for data in await store.list_all(MESSAGES):
        message = _from_record(data)
        if message is not None:
            messages.append(message)
    return messages


async def _persist(
    sender: str,
    recipient: str,
    content: str,
    msg_type: MessageType,
    session_info: SessionInfo | None = None,
) -> Message:
    if not recipient:
        raise ValueError("target agent id is required")
    message = Message(
        id=uuid7(),
        sender=sender,
        recipient=recipient,
        type=msg_type,
        content=content,
        timestamp=to_timestamp(utcnow()),
        session_info=session_info,
    )
    await store.put(MESSAGES, message.id, message.to_dict())
    log.debug(f"Queued {msg_type} {message.id} {sender} -> {recipient}")
    return message


async def send_message(
    terminal: Terminal,
    sender: str,
    recipient: str,
    content: str,
    msg_type: MessageType = "message",
) -> SendResult:
    """Queue a message, then try to type it into the recipient's terminal.

    Raises StorageError if the record cannot be written; delivery problems only
    show up in the returned outcome.
    """
    message = await _persist(sender, recipient, content, msg_type)
    outcome = await delivery.deliver(terminal, recipient, content)
    return SendResult(message, outcome)


async def send_command(
    terminal: Terminal,
    sender: str,
    recipient: str,
    command: str,
    session_info: SessionInfo | None = None,
) -> SendResult:
    message = await _persist(sender, recipient, command, "command", session_info)
    outcome = await delivery.deliver(terminal, recipient, command, session_info)
    return SendResult(message, outcome)


async def get_message(message_id: str) -> Message | None:
    data = await store.get(MESSAGES, message_id)
    return _from_record(data) if data is not None else None


async def delete_message(message_id: str) -> bool:
    return await store.delete(MESSAGES, message_id)


async def incoming_messages(agent_id: str) -> list[Message]:
    """Messages addressed to agent_id, oldest first by record timestamp."""
    messages = [m for m in await _all_messages() if m.recipient == agent_id]
    return sorted(messages, key=lambda m: m.sent_at)


async def describe_command(message: Message) -> str:
    return f"Processed command from {message.sender}: {message.content}"


async def process_incoming_commands(
    terminal: Terminal,
    agent_id: str,
    executor: Executor | None = None,
) -> list[str]:
    """Run every queued command for agent_id, acknowledge it, then delete it.

    One failing command is recorded and does not stop the rest.
    """
    execute = executor or describe_command
    results = []
    for message in await incoming_messages(agent_id):
        if message.type != "command":
            continue
        try:
            results.append(await execute(message))
            await send_message(
                terminal,
                agent_id,
                message.sender,
                f"Command executed: {message.content}",
                "response",
            )
            await delete_message(message.id)
        except Exception as e:
            log.warning(f"Command {message.id} from {message.sender} failed: {e}")
            results.append(f"Failed to process command: {e}")
    return results


async def message_history(
    agent_id: str, target_id: str | None = None, limit: int = 50
) -> list[Message]:
    """Messages involving agent_id (or target_id when given), newest first."""
    if limit <= 0:
        return []
    messages = [
        m
        for m in await _all_messages()
        if m.involves(agent_id) or (target_id is not None and m.involves(target_id))
    ]
    messages.sort(key=lambda m: m.sent_at, reverse=True)
    return messages[:limit]


async def clear_old_messages(hours_old: float = 24, now: float | None = None) -> int:
    """Delete records whose file mtime is strictly older than now - hours_old.

    Ages by file modification time, not by the record's own timestamp.
    """
    cutoff = (now if now is not None else time.time()) - hours_old * 3600
    deleted = 0
    for key in await store.keys(MESSAGES):
        mtime = await store.modified_at(MESSAGES, key)
        if mtime is None or mtime >= cutoff:
            continue
        if await store.delete(MESSAGES, key):
            deleted += 1
    if deleted:
        log.info(f"Pruned {deleted} messages older than {hours_old}h")
    return deleted
