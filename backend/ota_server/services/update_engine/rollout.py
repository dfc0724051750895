from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def hash_device_id(device_id: str) -> int:
    """Bucket a device id into 0..99.

    32-bit ``h * 31 + unit`` rolling hash over UTF-16 code units, reduced as
    ``abs(h) % 100``. Matches the bucketing already deployed in client SDKs,
    so a device keeps its bucket across servers.
    """
    raw = device_id.encode("utf-16-le")
    value = 0
    for offset in range(0, len(raw), 2):
        unit = raw[offset] | (raw[offset + 1] << 8)
        value = ((value << 5) - value + unit) & _INT32_MASK
    if value & _INT32_SIGN:
        value -= 1 << 32
    return abs(value) % 100


def is_device_eligible_for_update(
    device_id: str,
    rollout_percentage: int | None,
    target_device_ids: Sequence[str] | None,
) -> bool:
    if target_device_ids:
        return device_id in target_device_ids
    if rollout_percentage is None or rollout_percentage >= 100:
        return True
    if rollout_percentage <= 0:
        return False
    return hash_device_id(device_id) < rollout_percentage


def parse_target_device_ids(value: Any) -> tuple[str, ...] | None:
    """Normalize a stored allow-list (list or JSON-encoded list)."""
    if not value:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    if not isinstance(value, (list, tuple)):
        return None
    return tuple(item for item in value if isinstance(item, str))
