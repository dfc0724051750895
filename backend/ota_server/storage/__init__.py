from __future__ import annotations

from ota_server.core.config import Settings
from ota_server.storage.base import SignedUrlIssuer, StorageLocation, parse_storage_uri
from ota_server.storage.jwt_signed import JwtSignedUrlIssuer
from ota_server.storage.s3 import S3SignedUrlIssuer


def build_signed_url_issuer(settings: Settings) -> SignedUrlIssuer:
    if settings.storage_backend == "jwt":
        return JwtSignedUrlIssuer(
            base_url=settings.storage_public_base_url,
            secret=settings.signed_url_secret,
            algorithm=settings.signed_url_algorithm,
        )
    if settings.storage_backend == "s3":
        return S3SignedUrlIssuer(region=settings.s3_region, endpoint_url=settings.s3_endpoint_url)
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "JwtSignedUrlIssuer",
    "S3SignedUrlIssuer",
    "SignedUrlIssuer",
    "StorageLocation",
    "build_signed_url_issuer",
    "parse_storage_uri",
]
