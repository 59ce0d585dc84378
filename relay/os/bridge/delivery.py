"""Live delivery: type a queued message into the target agent's tmux pane.

Delivery is layered on top of the queue. The record is already on disk by the
time anything here runs, and nothing here can undo it: every failure turns into
a DeliveryFailed outcome.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from relay.core.models import Delivered, DeliveryFailed, DeliveryOutcome, Persisted, SessionInfo
from relay.errors import TmuxError
from relay.lib import config
from relay.lib.tmux import session_of
from relay.os import presence

log = logging.getLogger(__name__)


class Terminal(Protocol):
    async def send_keys(self, target: str, text: str, press_enter: bool = True) -> str: ...

    async def has_session(self, name: str) -> bool: ...


async def resolve_target(recipient: str, session_info: SessionInfo | None = None) -> str | None:
    """Explicit session info wins; otherwise the recipient's registered session."""
    default_window = config.get("default_window")
    if session_info is not None:
        return session_info.target(default_window)
    agent = await presence.get_agent(recipient)
    if agent and agent.session:
        return f"{agent.session}:{default_window}"
    return None


async def type_and_submit(terminal: Terminal, target: str, text: str, settle: float) -> None:
    """Paste text, wait for the UI to register it, then press Enter on its own.

    Some agent UIs drop an Enter that arrives in the same burst as pasted text,
    so the two are sent as separate events with a gap.
    """
    await terminal.send_keys(target, text, False)
    await asyncio.sleep(settle)
    await terminal.send_keys(target, "", True)


async def deliver(
    terminal: Terminal,
    recipient: str,
    text: str,
    session_info: SessionInfo | None = None,
) -> DeliveryOutcome:
    try:
        target = await resolve_target(recipient, session_info)
    except (OSError, ValueError) as e:
        log.warning(f"Could not resolve a live target for {recipient}: {e}")
        return DeliveryFailed(recipient, f"could not resolve target: {e}")
    if target is None:
        return Persisted()

    try:
        session = session_of(target)
        if session and not target.startswith("%") and not await terminal.has_session(session):
            return DeliveryFailed(target, f"tmux session '{session}' not found")
        await type_and_submit(terminal, target, text, config.get("settle_delay_seconds"))
    except (TmuxError, OSError) as e:
        log.warning(f"Live delivery to {target} failed: {e}")
        return DeliveryFailed(target, str(e))
    except Exception as e:
        log.error(f"Live delivery to {target} failed unexpectedly: {e}", exc_info=True)
        return DeliveryFailed(target, str(e))

    log.debug(f"Delivered to {recipient} at {target}")
    return Delivered(target)
