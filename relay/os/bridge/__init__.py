from . import delivery, messaging
from .delivery import deliver, resolve_target
from .messaging import (
    clear_old_messages,
    delete_message,
    get_message,
    incoming_messages,
    message_history,
    process_incoming_commands,
    send_command,
    send_message,
)

__all__ = [
    "clear_old_messages",
    "deliver",
    "delete_message",
    "delivery",
    "get_message",
    "incoming_messages",
    "message_history",
    "messaging",
    "process_incoming_commands",
    "resolve_target",
    "send_command",
    "send_message",
]
