from urllib.parse import urlsplit

import jwt

B1 = "01900000-0000-7000-8000-000000000001"


def _signed_path(client, storage_uri: str, ttl_seconds: int = 60) -> str:
    from ota_server.main import app

    url = app.state.signed_url_issuer.sign(storage_uri, ttl_seconds)
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}"


def _storage_root(tmp_path, override_settings):
    root = tmp_path / "storage"
    (root / "bundles").mkdir(parents=True)
    (root / "bundles" / "release.zip").write_bytes(b"PK\x03\x04bundle")
    override_settings(storage_local_root=str(root))
    return root


def test_signed_link_from_update_downloads_bundle(client, add_bundle, override_settings, tmp_path):
    _storage_root(tmp_path, override_settings)
    add_bundle(id=B1, storage_uri="local://bundles/release.zip")

    decision = client.get(
        "/api/v1/update",
        headers={"x-bundle-id": "00000000-0000-0000-0000-000000000000", "x-app-platform": "ios", "x-app-version": "1.0.0"},
    ).json()
    parts = urlsplit(decision["storageUri"])
    response = client.get(f"{parts.path}?{parts.query}")

    assert response.status_code == 200
    assert response.content == b"PK\x03\x04bundle"
    assert response.headers["content-type"] == "application/octet-stream"
    assert "release.zip" in response.headers["content-disposition"]


def test_download_requires_token(client, override_settings, tmp_path):
    _storage_root(tmp_path, override_settings)

    response = client.get("/storage/bundles/release.zip")

    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "Missing token"


def test_download_rejects_token_for_another_object(client, override_settings, tmp_path):
    _storage_root(tmp_path, override_settings)
    token_query = _signed_path(client, "local://bundles/other.zip").split("?", 1)[1]

    response = client.get(f"/storage/bundles/release.zip?{token_query}")

    assert response.status_code == 403


def test_download_rejects_expired_or_foreign_tokens(client, override_settings, tmp_path):
    _storage_root(tmp_path, override_settings)
    expired = jwt.encode({"sub": "bundles/release.zip", "exp": 1}, "test-signing-secret", algorithm="HS256")
    foreign = jwt.encode({"sub": "bundles/release.zip"}, "some-other-secret", algorithm="HS256")

    for token in (expired, foreign, "garbage"):
        response = client.get(f"/storage/bundles/release.zip?token={token}")
        assert response.status_code == 403


def test_download_missing_file_is_not_found(client, override_settings, tmp_path):
    _storage_root(tmp_path, override_settings)

    response = client.get(_signed_path(client, "local://bundles/missing.zip"))

    assert response.status_code == 404
    assert response.json()["errors"][0]["message"] == "File not found"


def test_downloads_disabled_without_local_root(client, override_settings):
    override_settings(storage_local_root="")

    response = client.get(_signed_path(client, "local://bundles/release.zip"))

    assert response.status_code == 404
