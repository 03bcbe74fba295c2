"""Time-ordered identifiers and clock helpers.

Message and channel identifiers are UUIDv7 values (RFC 9562): the top 48
bits hold the creation time in Unix milliseconds, so sorting identifiers
sorts by creation time.  Within one process the generator is strictly
monotonic, even for many identifiers minted inside the same millisecond,
which keeps insertion order and display order aligned across concurrent
ingestion tasks.
"""

from __future__ import annotations

import os
import threading
import time
import uuid

_RAND_A_BITS = 12
_RAND_B_BITS = 62
_MAX_RAND_A = (1 << _RAND_A_BITS) - 1

_lock = threading.Lock()
_last_ms = 0
_last_seq = 0


def now_ms() -> int:
    """Return the current wall-clock time in Unix milliseconds."""
    return time.time_ns() // 1_000_000


def _next_timestamp_and_seq() -> tuple[int, int]:
    global _last_ms, _last_seq  # noqa: PLW0603
    with _lock:
        ms = now_ms()
        if ms > _last_ms:
            _last_ms = ms
            _last_seq = int.from_bytes(os.urandom(2), "big") & (_MAX_RAND_A >> 1)
        else:
            # Same (or an earlier, after a clock step back) millisecond:
            # bump the counter, borrowing the next millisecond on overflow.
            _last_seq += 1
            if _last_seq > _MAX_RAND_A:
                _last_ms += 1
                _last_seq = 0
        return _last_ms, _last_seq


def uuid7() -> uuid.UUID:
    """Return a new, process-monotonic UUIDv7."""
    ms, seq = _next_timestamp_and_seq()
    rand_b = int.from_bytes(os.urandom(8), "big") & ((1 << _RAND_B_BITS) - 1)
    value = (ms & ((1 << 48) - 1)) << 80
    value |= 0x7 << 76
    value |= seq << 64
    value |= 0b10 << 62
    value |= rand_b
    return uuid.UUID(int=value)


def uuid7_timestamp_ms(value: uuid.UUID) -> int:
    """Return the Unix-millisecond creation time embedded in a UUIDv7."""
    return value.int >> 80


def parse_message_id(raw: str) -> uuid.UUID | None:
    """Parse an identifier supplied by a caller.

    Accepts the canonical hyphenated form, the 32-digit hex form, and the
    decimal 128-bit integer form used by older clients.

    Returns:
        The parsed UUID, or ``None`` when *raw* is not an identifier at all.
    """
    raw = raw.strip()
    # int() and uuid.UUID() both accept non-ASCII digits.
    if not raw or not raw.isascii():
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        pass
    if raw.isdigit():
        number = int(raw)
        if number < (1 << 128):
            return uuid.UUID(int=number)
    return None
