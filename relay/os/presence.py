"""Presence registry: who is on the network and whether they are still alive."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from relay.core.models import ONLINE, Agent, to_timestamp, utcnow
from relay.lib import config, store
from relay.lib.paths import AGENTS

log = logging.getLogger(__name__)


def offline_after() -> timedelta:
    return timedelta(seconds=config.get("offline_after_seconds"))


def _from_record(data: dict) -> Agent | None:
    try:
        return Agent.from_dict(data)
    except ValueError as e:
        log.debug(f"Skipping malformed agent record {data.get('id')!r}: {e}")
        return None


async def register_agent(agent_id: str, name: str, session: str) -> Agent:
    """Write (or overwrite) the agent record with last_seen = now.

    Storage failures propagate: a caller that believes it is registered when it
    is not would be invisible to every peer.
    """
    if not agent_id:
        raise ValueError("agent_id is required")
    agent = Agent(
        id=agent_id,
        name=name,
        session=session,
        last_seen=to_timestamp(utcnow()),
        status=ONLINE,
    )
    await store.put(AGENTS, agent_id, agent.to_dict())
    log.info(f"Registered agent {name} ({agent_id}) in session {session}")
    return agent


async def unregister_agent(agent_id: str) -> bool:
    removed = await store.delete(AGENTS, agent_id)
    if removed:
        log.info(f"Unregistered agent {agent_id}")
    return removed


async def get_agent(agent_id: str, now: datetime | None = None) -> Agent | None:
    data = await store.get(AGENTS, agent_id)
    if data is None:
        return None
    agent = _from_record(data)
    if agent is None:
        return None
    return agent.with_status(now or utcnow(), offline_after())


async def list_agents(now: datetime | None = None) -> list[Agent]:
    """Every parseable agent record with freshly derived status, in directory order."""
    now = now or utcnow()
    threshold = offline_after()
    agents = []
    for data in await store.list_all(AGENTS):
        agent = _from_record(data)
        if agent is not None:
            agents.append(agent.with_status(now, threshold))
    return agents


async def touch_agent(agent_id: str) -> bool:
    """Refresh last_seen. A missing record is left missing; returns False in that case."""
    data = await store.get(AGENTS, agent_id)
    agent = _from_record(data) if data is not None else None
    if agent is None:
        log.debug(f"Heartbeat skipped: no record for agent {agent_id}")
        return False
    agent.last_seen = to_timestamp(utcnow())
    agent.status = ONLINE
    await store.put(AGENTS, agent_id, agent.to_dict())
    return True


__all__ = [
    "get_agent",
    "list_agents",
    "offline_after",
    "register_agent",
    "touch_agent",
    "unregister_agent",
]
