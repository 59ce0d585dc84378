from __future__ import annotations

import secrets
import threading
import time
import uuid as _uuid

# Same-millisecond ids bump a 12-bit counter (RFC 9562 Method 2)
_state_lock = threading.Lock()
_last_timestamp_ms = 0
_counter = 0

_USE_NATIVE = hasattr(_uuid, "uuid7")


def uuid7() -> str:
    """Generate a time-ordered UUID v7 string.

    Record files are keyed by these ids, so two processes writing at the same
    instant must not collide: the 62-bit random tail carries that guarantee.
    """
    if _USE_NATIVE:
        return str(_uuid.uuid7())

    global _last_timestamp_ms, _counter

    with _state_lock:
        timestamp_ms = int(time.time() * 1000)

        if timestamp_ms == _last_timestamp_ms:
            _counter = (_counter + 1) & 0xFFF
        else:
            _counter = secrets.randbits(12)
            _last_timestamp_ms = timestamp_ms

        time_high = (timestamp_ms >> 16) & 0xFFFFFFFF
        time_low = timestamp_ms & 0xFFFF
        time_low_and_version = (time_low << 16) | (7 << 12) | _counter

        variant_and_rand = (0b10 << 62) | secrets.randbits(62)

        uuid_int = (time_high << 96) | (time_low_and_version << 64) | variant_and_rand
        return str(_uuid.UUID(int=uuid_int))


def short_id(full_id: str) -> str:
    """Last 8 chars: the high-entropy tail, safe for display."""
    return full_id[-8:]


__all__ = ["uuid7", "short_id"]
