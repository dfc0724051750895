from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import boto3
import jwt
import pytest
from botocore.exceptions import ClientError

from ota_server.core.config import Settings
from ota_server.services.update_engine.errors import SignedUrlError
from ota_server.storage import JwtSignedUrlIssuer, S3SignedUrlIssuer, build_signed_url_issuer, parse_storage_uri

SECRET = "unit-test-secret-with-enough-length"


def test_parse_storage_uri() -> None:
    location = parse_storage_uri("S3://bundles/releases/ios/1.zip")

    assert location.scheme == "s3"
    assert location.bucket == "bundles"
    assert location.key == "releases/ios/1.zip"


@pytest.mark.parametrize("storage_uri", ["", "bundles/1.zip", "s3://bundles", "s3:///1.zip"])
def test_parse_storage_uri_rejects_malformed(storage_uri: str) -> None:
    with pytest.raises(SignedUrlError):
        parse_storage_uri(storage_uri)


def test_jwt_issuer_signs_object_path() -> None:
    issuer = JwtSignedUrlIssuer(base_url="https://ota.example.com/storage/", secret=SECRET)

    url = issuer.sign("local://bundles/releases/1.zip", 300)

    parts = urlsplit(url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://ota.example.com/storage/bundles/releases/1.zip"
    token = parse_qs(parts.query)["token"][0]
    payload = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert payload["sub"] == "bundles/releases/1.zip"
    assert payload["exp"] - payload["iat"] == 300
    assert issuer.verify_signed_token(token, "bundles/releases/1.zip")["sub"] == "bundles/releases/1.zip"


def test_jwt_issuer_rejects_foreign_or_expired_tokens() -> None:
    issuer = JwtSignedUrlIssuer(base_url="https://ota.example.com/storage", secret=SECRET)
    token = parse_qs(urlsplit(issuer.sign("local://bundles/1.zip", 60)).query)["token"][0]

    with pytest.raises(SignedUrlError):
        issuer.verify_signed_token(token, "bundles/2.zip")
    with pytest.raises(SignedUrlError):
        JwtSignedUrlIssuer(base_url="https://x", secret="another-secret-value").verify_signed_token(token, "bundles/1.zip")

    expired = jwt.encode({"sub": "bundles/1.zip", "exp": 1}, SECRET, algorithm="HS256")
    with pytest.raises(SignedUrlError):
        issuer.verify_signed_token(expired, "bundles/1.zip")


def test_s3_issuer_presigns_get_object() -> None:
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="AKIDEXAMPLE",
        aws_secret_access_key="secret",
    )
    issuer = S3SignedUrlIssuer(client=client)

    url = issuer.sign("s3://bundles/releases/1.zip", 600)

    assert "bundles" in url
    assert "releases/1.zip" in url
    assert issuer.ready() is True


class _FailingS3Client:
    def generate_presigned_url(self, *args, **kwargs):
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "GetObject")


def test_s3_issuer_wraps_client_errors() -> None:
    issuer = S3SignedUrlIssuer(client=_FailingS3Client())

    with pytest.raises(SignedUrlError) as exc_info:
        issuer.sign("s3://bundles/1.zip", 60)
    assert exc_info.value.error_code == "signed_url_failed"

    with pytest.raises(SignedUrlError):
        issuer.sign("r2://bundles/1.zip", 60)


def test_issuer_factory_follows_storage_backend() -> None:
    jwt_settings = Settings(app_env="test", storage_backend="jwt", signed_url_secret=SECRET)
    s3_settings = Settings(app_env="test", storage_backend="s3", s3_region="eu-west-1")

    assert isinstance(build_signed_url_issuer(jwt_settings), JwtSignedUrlIssuer)
    assert isinstance(build_signed_url_issuer(s3_settings), S3SignedUrlIssuer)
