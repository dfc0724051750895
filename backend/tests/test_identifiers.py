from __future__ import annotations

import uuid

from ota_server.services.update_engine.identifiers import (
    NIL_ID,
    BundleIdGenerator,
    generate_bundle_id,
    is_valid_bundle_id,
    normalize_bundle_id,
)


def _timestamp_ms(bundle_id: str) -> int:
    return uuid.UUID(bundle_id).int >> 80


def test_generated_ids_are_uuid_v7() -> None:
    bundle_id = generate_bundle_id()

    parsed = uuid.UUID(bundle_id)
    assert parsed.version == 7
    assert parsed.variant == uuid.RFC_4122
    assert is_valid_bundle_id(bundle_id)
    assert bundle_id > NIL_ID


def test_ids_sort_in_creation_order_within_one_millisecond() -> None:
    generator = BundleIdGenerator(clock_ms=lambda: 1_700_000_000_000)

    ids = [generator.next_id() for _ in range(500)]

    assert ids == sorted(ids)
    assert len(set(ids)) == 500
    assert all(_timestamp_ms(bundle_id) == 1_700_000_000_000 for bundle_id in ids)


def test_ids_follow_the_clock() -> None:
    ticks = iter([1_000, 2_000])
    generator = BundleIdGenerator(clock_ms=lambda: next(ticks))

    first = generator.next_id()
    second = generator.next_id()

    assert first < second
    assert _timestamp_ms(first) == 1_000
    assert _timestamp_ms(second) == 2_000


def test_bundle_id_validation() -> None:
    assert is_valid_bundle_id(NIL_ID)
    assert is_valid_bundle_id("0190A5E2-7B3C-7D4E-8F00-000000000001")
    assert normalize_bundle_id(" 0190A5E2-7B3C-7D4E-8F00-000000000001 ") == "0190a5e2-7b3c-7d4e-8f00-000000000001"
    assert not is_valid_bundle_id("not-a-bundle-id")
    assert not is_valid_bundle_id("")
    assert not is_valid_bundle_id(None)
