"""Native fingerprint compatibility.

A native fingerprint is a 160-bit hash (40 hex chars) of the native build.
Only its leading 80 bits describe state an OTA bundle depends on; the
trailing 80 bits isolate native-only changes (build caches, store rebuilds)
and never affect OTA targeting.
"""
from __future__ import annotations

import re
from collections.abc import Iterable

FINGERPRINT_LENGTH = 40
OTA_PREFIX_LENGTH = 20

_FINGERPRINT_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")


def extract_ota_fingerprint(native_fingerprint: str) -> str:
    return native_fingerprint[:OTA_PREFIX_LENGTH].lower()


def extract_caching_part(native_fingerprint: str) -> str:
    return native_fingerprint[OTA_PREFIX_LENGTH:FINGERPRINT_LENGTH].lower()


def is_valid_fingerprint(value: str | None) -> bool:
    return bool(value) and _FINGERPRINT_PATTERN.match(value) is not None


def is_ota_compatible(first: str | None, second: str | None) -> bool:
    if not first or not second:
        return False
    return extract_ota_fingerprint(first) == extract_ota_fingerprint(second)


def filter_compatible_fingerprints(stored_fingerprints: Iterable[str | None], device_fingerprint: str) -> list[str]:
    """Stored fingerprints a device may receive bundles for.

    Malformed stored values are dropped rather than raised so one bad row
    cannot block resolution for the rest of the catalog.
    """
    compatible: list[str] = []
    for stored in dict.fromkeys(stored_fingerprints):
        if not is_valid_fingerprint(stored):
            continue
        if is_ota_compatible(stored, device_fingerprint):
            compatible.append(stored)
    return sorted(compatible)
