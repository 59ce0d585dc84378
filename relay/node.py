"""Node: one agent process's view of the relay network.

Every operation is performed as this node's identity. Methods mirror the
operations an agent invokes and answer with either data or a readable
confirmation string.
"""

from __future__ import annotations

import logging
import os
import time

from relay.core.models import Agent, Message, SessionInfo
from relay.errors import StorageError
from relay.lib import config
from relay.lib.tmux import Tmux
from relay.lib.uuid7 import uuid7
from relay.os import bridge, presence
from relay.os.bridge.delivery import Terminal
from relay.os.bridge.messaging import Executor
from relay.os.heartbeat import Heartbeat

log = logging.getLogger(__name__)


def default_name() -> str:
    return os.environ.get("RELAY_AGENT_NAME") or f"agent-{int(time.time() * 1000)}"


class Node:
    def __init__(
        self,
        name: str | None = None,
        agent_id: str | None = None,
        terminal: Terminal | None = None,
        executor: Executor | None = None,
    ):
        self.agent_id = agent_id or uuid7()
        self.name = name or default_name()
        self.terminal = terminal or Tmux(timeout=config.get("tmux_timeout_seconds"))
        self.executor = executor

    async def register_agent(self, session_name: str) -> str:
        await presence.register_agent(self.agent_id, self.name, session_name)
        return f'Agent "{self.name}" registered with ID: {self.agent_id}'

    async def unregister_agent(self) -> str:
        try:
            removed = await presence.unregister_agent(self.agent_id)
        except StorageError as e:
            return f"Failed to unregister agent: {e}"
        if not removed:
            return f"Failed to unregister agent: no record for {self.agent_id}"
        return f'Agent "{self.name}" unregistered successfully'

    async def list_active_agents(self) -> list[Agent]:
        return await presence.list_agents()

    async def get_agent_info(self, agent_id: str) -> Agent | None:
        return await presence.get_agent(agent_id)

    async def update_heartbeat(self) -> bool:
        return await presence.touch_agent(self.agent_id)

    def heartbeat(self, interval: float | None = None) -> Heartbeat:
        """Heartbeat task bound to this node; the caller owns start/stop."""
        if interval is None:
            interval = config.get("heartbeat_interval_seconds")
        return Heartbeat(self.update_heartbeat, interval)

    async def send_message(self, target_agent_id: str, content: str, msg_type="message") -> str:
        result = await bridge.send_message(
            self.terminal, self.agent_id, target_agent_id, content, msg_type
        )
        return result.describe()

    async def send_command(
        self, target_agent_id: str, command: str, session_info: SessionInfo | None = None
    ) -> str:
        result = await bridge.send_command(
            self.terminal, self.agent_id, target_agent_id, command, session_info
        )
        return result.describe()

    async def get_incoming_messages(self) -> list[Message]:
        return await bridge.incoming_messages(self.agent_id)

    async def process_incoming_commands(self) -> list[str]:
        return await bridge.process_incoming_commands(self.terminal, self.agent_id, self.executor)

    async def get_message_history(
        self, target_agent_id: str | None = None, limit: int | None = None
    ) -> list[Message]:
        if limit is None:
            limit = config.get("history_limit")
        return await bridge.message_history(self.agent_id, target_agent_id, limit)

    async def clear_old_messages(self, hours_old: float | None = None) -> str:
        if hours_old is None:
            hours_old = config.get("retention_hours")
        try:
            deleted = await bridge.clear_old_messages(hours_old)
        except (StorageError, OSError) as e:
            return f"Failed to clear old messages: {e}"
        return f"Deleted {deleted} old messages"
