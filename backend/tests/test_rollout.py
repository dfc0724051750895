from __future__ import annotations

import uuid

from ota_server.services.update_engine.rollout import (
    hash_device_id,
    is_device_eligible_for_update,
    parse_target_device_ids,
)


def test_hash_is_stable_for_known_devices() -> None:
    assert hash_device_id("device-0") == 65
    assert hash_device_id("device-1") == 66
    assert hash_device_id("device-10") == 26
    assert hash_device_id("device-99") == 83
    assert hash_device_id("") == 0


def test_hash_is_pure() -> None:
    for device_id in ("device-0", "a" * 64, "ünïcødé-device"):
        assert hash_device_id(device_id) == hash_device_id(device_id)
        assert 0 <= hash_device_id(device_id) < 100


def test_allow_list_overrides_percentage() -> None:
    assert is_device_eligible_for_update("device-a", 0, ["device-a"]) is True
    assert is_device_eligible_for_update("device-b", 100, ["device-a"]) is False
    assert is_device_eligible_for_update("device-b", None, ["device-a", "device-b"]) is True


def test_percentage_bounds() -> None:
    assert is_device_eligible_for_update("device-0", None, None) is True
    assert is_device_eligible_for_update("device-0", 100, None) is True
    assert is_device_eligible_for_update("device-0", 0, None) is False
    assert is_device_eligible_for_update("device-0", -5, []) is False


def test_partial_rollout_compares_bucket_to_percentage() -> None:
    assert is_device_eligible_for_update("device-10", 50, None) is True
    assert is_device_eligible_for_update("device-99", 50, None) is False
    assert is_device_eligible_for_update("device-0", 65, None) is False
    assert is_device_eligible_for_update("device-0", 66, None) is True


def test_half_rollout_reaches_about_half_of_the_fleet() -> None:
    device_ids = [str(uuid.uuid5(uuid.NAMESPACE_URL, f"device-{index}")) for index in range(1000)]

    eligible = sum(1 for device_id in device_ids if is_device_eligible_for_update(device_id, 50, None))

    assert 450 < eligible < 550


def test_parse_target_device_ids() -> None:
    assert parse_target_device_ids(["a", "b"]) == ("a", "b")
    assert parse_target_device_ids('["a", 3, "b"]') == ("a", "b")
    assert parse_target_device_ids("not json") is None
    assert parse_target_device_ids('{"a": 1}') is None
    assert parse_target_device_ids(None) is None
    assert parse_target_device_ids([]) is None
