"""Shared data models and types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

ONLINE = "online"
OFFLINE = "offline"
AgentStatus = Literal["online", "offline"]

MESSAGE_TYPES = ("command", "message", "response")
MessageType = Literal["command", "message", "response"]

OFFLINE_AFTER = timedelta(minutes=5)


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_timestamp(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp. Naive values are read as UTC."""
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment


def status_of(
    last_seen: datetime, now: datetime, offline_after: timedelta = OFFLINE_AFTER
) -> AgentStatus:
    """Derive presence from the last heartbeat. Never read a stored status instead."""
    return ONLINE if now - last_seen < offline_after else OFFLINE


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"Field '{key}' must be a string")
    return value


@dataclass
class Agent:
    """An agent registered for inter-agent communication."""

    id: str
    name: str
    session: str
    last_seen: str
    status: AgentStatus = ONLINE

    @property
    def last_seen_at(self) -> datetime:
        return parse_timestamp(self.last_seen)

    def with_status(
        self, now: datetime, offline_after: timedelta = OFFLINE_AFTER
    ) -> Agent:
        self.status = status_of(self.last_seen_at, now, offline_after)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "session": self.session,
            "lastSeen": self.last_seen,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Agent:
        """Build from a stored record. Raises ValueError on a malformed shape."""
        agent = cls(
            id=_require_str(data, "id"),
            name=_require_str(data, "name"),
            session=_require_str(data, "session"),
            last_seen=_require_str(data, "lastSeen"),
        )
        parse_timestamp(agent.last_seen)
        status = data.get("status")
        if status in (ONLINE, OFFLINE):
            agent.status = status
        return agent


@dataclass
class SessionInfo:
    """Explicit tmux location for a command, overriding the registry."""

    session: str
    window: str | None = None
    pane: str | None = None

    def target(self, default_window: str = "0") -> str:
        if self.pane:
            return self.pane
        return f"{self.session}:{self.window or default_window}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"session": self.session}
        if self.window is not None:
            data["window"] = self.window
        if self.pane is not None:
            data["pane"] = self.pane
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionInfo:
        if not isinstance(data, dict):
            raise ValueError("sessionInfo must be an object")
        window = data.get("window")
        pane = data.get("pane")
        return cls(
            session=_require_str(data, "session"),
            window=None if window is None else str(window),
            pane=None if pane is None else str(pane),
        )


@dataclass
class Message:
    """A directed unit of communication between two agents."""

    id: str
    sender: str
    recipient: str
    type: MessageType
    content: str
    timestamp: str
    session_info: SessionInfo | None = None

    @property
    def sent_at(self) -> datetime:
        return parse_timestamp(self.timestamp)

    def involves(self, agent_id: str) -> bool:
        return self.sender == agent_id or self.recipient == agent_id

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "from": self.sender,
            "to": self.recipient,
            "type": self.type,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.session_info is not None:
            data["sessionInfo"] = self.session_info.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        """Build from a stored record. Raises ValueError on a malformed shape."""
        msg_type = data.get("type")
        if msg_type not in MESSAGE_TYPES:
            raise ValueError(f"Unknown message type: {msg_type!r}")
        raw_info = data.get("sessionInfo")
        message = cls(
            id=_require_str(data, "id"),
            sender=_require_str(data, "from"),
            recipient=_require_str(data, "to"),
            type=msg_type,
            content=_require_str(data, "content"),
            timestamp=_require_str(data, "timestamp"),
            session_info=SessionInfo.from_dict(raw_info) if raw_info is not None else None,
        )
        parse_timestamp(message.timestamp)
        return message


@dataclass(frozen=True)
class Persisted:
    """Queued only: no live location was known for the target."""


@dataclass(frozen=True)
class Delivered:
    """Queued and typed into the target's terminal."""

    target: str


@dataclass(frozen=True)
class DeliveryFailed:
    """Queued, but live delivery to `target` failed."""

    target: str
    reason: str


DeliveryOutcome = Persisted | Delivered | DeliveryFailed


@dataclass(frozen=True)
class SendResult:
    message: Message
    outcome: DeliveryOutcome

    @property
    def delivered(self) -> bool:
        return isinstance(self.outcome, Delivered)

    def describe(self) -> str:
        """Human-readable confirmation for the caller."""
        msg = self.message
        noun = "Command" if msg.type == "command" else "Message"
        outcome = self.outcome
        if isinstance(outcome, Delivered):
            return f"{noun} sent to agent {msg.recipient} in tmux target {outcome.target}: {msg.content}"
        if isinstance(outcome, DeliveryFailed):
            return (
                f"{noun} queued for agent {msg.recipient}, but failed to send to tmux "
                f"target {outcome.target}: {outcome.reason}"
            )
        return f"{noun} queued for agent {msg.recipient}: {msg.content}"
