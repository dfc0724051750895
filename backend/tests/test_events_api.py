import json

from ota_server.models.device_event import DeviceEvent

B1 = "01900000-0000-7000-8000-000000000001"


def _event(**fields) -> dict:
    body = {
        "deviceId": "device-1",
        "bundleId": B1,
        "eventType": "PROMOTED",
        "platform": "android",
        "appVersion": "2.1.0",
        "channel": "beta",
    }
    body.update(fields)
    return body


def test_track_records_device_event(client, db_session):
    response = client.post("/api/v1/track", json=_event(metadata={"crashedBundleId": B1}))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["tracked"] is True
    row = db_session.get(DeviceEvent, data["id"])
    assert (row.device_id, row.bundle_id, row.event_type) == ("device-1", B1, "PROMOTED")
    assert (row.platform, row.app_version, row.channel) == ("android", "2.1.0", "beta")
    assert json.loads(row.metadata_json) == {"crashedBundleId": B1}


def test_track_accepts_snake_case_and_normalizes_bundle_id(client, db_session):
    response = client.post(
        "/api/v1/track",
        json={
            "device_id": "device-2",
            "bundle_id": B1.upper(),
            "event_type": "RECOVERED",
            "platform": "ios",
            "channel": "production",
        },
    )

    assert response.status_code == 200
    row = db_session.get(DeviceEvent, response.json()["data"]["id"])
    assert row.bundle_id == B1
    assert row.app_version is None


def test_track_rejects_incomplete_or_unknown_events(client):
    cases = [
        _event(eventType="STABLE"),
        _event(platform="windows"),
        _event(bundleId="latest"),
        _event(deviceId=""),
        {key: value for key, value in _event().items() if key != "channel"},
    ]
    for body in cases:
        response = client.post("/api/v1/track", json=body)
        assert response.status_code == 422, body
        assert response.json()["errors"][0]["code"] == "validation_error"


def test_track_unsupported_on_json_catalog(client, override_settings, tmp_path):
    catalog = tmp_path / "catalog.json"
    catalog.write_text("[]", encoding="utf-8")
    override_settings(database_backend="json", bundle_catalog_path=str(catalog))

    response = client.post("/api/v1/track", json=_event())

    assert response.status_code == 501
