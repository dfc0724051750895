from __future__ import annotations

from ota_server.services.update_engine.fingerprint import (
    extract_caching_part,
    extract_ota_fingerprint,
    filter_compatible_fingerprints,
    is_ota_compatible,
    is_valid_fingerprint,
)

NATIVE = "0123456789abcdef0123" + "fedcba9876543210fedc"
REBUILT = "0123456789abcdef0123" + "00000000000000000000"
OTHER = "1123456789abcdef0123" + "fedcba9876543210fedc"


def test_fingerprint_is_split_into_ota_and_caching_halves() -> None:
    assert extract_ota_fingerprint(NATIVE) == "0123456789abcdef0123"
    assert len(extract_ota_fingerprint(NATIVE)) == 20
    assert extract_caching_part(NATIVE) == "fedcba9876543210fedc"
    assert extract_ota_fingerprint(NATIVE.upper()) == "0123456789abcdef0123"


def test_ota_compatibility_ignores_caching_half() -> None:
    assert is_ota_compatible(NATIVE, REBUILT) is True
    assert is_ota_compatible(REBUILT, NATIVE) is True
    assert is_ota_compatible(NATIVE, OTHER) is False
    assert is_ota_compatible(OTHER, NATIVE) is False


def test_missing_fingerprint_is_never_compatible() -> None:
    assert is_ota_compatible(None, NATIVE) is False
    assert is_ota_compatible(NATIVE, "") is False
    assert is_ota_compatible(None, None) is False


def test_fingerprint_shape() -> None:
    assert is_valid_fingerprint(NATIVE) is True
    assert is_valid_fingerprint(NATIVE[:39]) is False
    assert is_valid_fingerprint("z" * 40) is False
    assert is_valid_fingerprint(None) is False


def test_filter_drops_malformed_and_incompatible_fingerprints() -> None:
    stored = [NATIVE, REBUILT, OTHER, "not-a-fingerprint", None, NATIVE]

    assert filter_compatible_fingerprints(stored, NATIVE) == sorted([NATIVE, REBUILT])
    assert filter_compatible_fingerprints(stored, "") == []
