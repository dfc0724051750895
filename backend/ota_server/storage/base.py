from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlsplit

from ota_server.services.update_engine.errors import SignedUrlError


@dataclass(frozen=True)
class StorageLocation:
    scheme: str
    bucket: str
    key: str


def parse_storage_uri(storage_uri: str) -> StorageLocation:
    parts = urlsplit(storage_uri)
    key = parts.path.lstrip("/")
    if not parts.scheme or not parts.netloc or not key:
        raise SignedUrlError("Storage URI must look like scheme://bucket/key.", details={"storage_uri": storage_uri})
    return StorageLocation(scheme=parts.scheme.lower(), bucket=parts.netloc, key=key)


class SignedUrlIssuer(Protocol):
    def sign(self, storage_uri: str, ttl_seconds: int) -> str:
        ...

    def ready(self) -> bool:
        ...
