"""Time-ordered bundle identifiers.

Bundle ids are UUIDv7-shaped: a 48-bit Unix millisecond timestamp followed by
version/variant bits and random payload. Their canonical lowercase string form
sorts lexicographically in creation order, so the id doubles as the bundle's
monotonic version number on every backend.
"""
from __future__ import annotations

import os
import re
import threading
import time
import uuid

NIL_ID = "00000000-0000-0000-0000-000000000000"

_UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_TIMESTAMP_MASK = (1 << 48) - 1
_RANDOM_MASK = (1 << 80) - 1
_VERSION_BITS = 0x7 << 76
_VARIANT_BITS = 0x2 << 62


def normalize_bundle_id(value: str) -> str:
    return value.strip().lower()


def is_valid_bundle_id(value: str | None) -> bool:
    if not value:
        return False
    return _UUID_PATTERN.match(normalize_bundle_id(value)) is not None


def _compose(timestamp_ms: int, random_bits: int) -> int:
    value = ((timestamp_ms & _TIMESTAMP_MASK) << 80) | (random_bits & _RANDOM_MASK)
    value &= ~(0xF << 76)
    value &= ~(0x3 << 62)
    return value | _VERSION_BITS | _VARIANT_BITS


class BundleIdGenerator:
    """Monotonic UUIDv7 generator.

    Two ids minted in the same millisecond still compare in call order: when
    the fresh value would not exceed the previous one, the previous value is
    bumped in its random payload instead.
    """

    def __init__(self, clock_ms=None) -> None:
        self._clock_ms = clock_ms or (lambda: time.time_ns() // 1_000_000)
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            candidate = _compose(self._clock_ms(), int.from_bytes(os.urandom(10), "big"))
            if candidate <= self._last:
                candidate = self._bump(self._last)
            self._last = candidate
        return str(uuid.UUID(int=candidate))

    @staticmethod
    def _bump(previous: int) -> int:
        timestamp_ms = previous >> 80
        rand_a = (previous >> 64) & 0xFFF
        rand_b = previous & ((1 << 62) - 1)
        rand_b += 1
        if rand_b >> 62:
            rand_b = 0
            rand_a += 1
            if rand_a >> 12:
                rand_a = 0
                timestamp_ms += 1
        return _compose(timestamp_ms, (rand_a << 64) | rand_b)


_default_generator = BundleIdGenerator()


def generate_bundle_id() -> str:
    return _default_generator.next_id()
