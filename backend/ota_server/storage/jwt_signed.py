from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import quote

import jwt

from ota_server.services.update_engine.errors import SignedUrlError
from ota_server.storage.base import parse_storage_uri


class JwtSignedUrlIssuer:
    """Signs download links for a self-hosted file server.

    ``scheme://bucket/key`` becomes ``{base_url}/{bucket}/{key}?token=<jwt>``.
    The token names the object path and expires with the link, so the file
    server verifies it with the shared secret and nothing else.
    """

    def __init__(self, *, base_url: str, secret: str, algorithm: str = "HS256") -> None:
        self._base_url = base_url.rstrip("/")
        self._secret = secret
        self._algorithm = algorithm

    def sign(self, storage_uri: str, ttl_seconds: int) -> str:
        location = parse_storage_uri(storage_uri)
        object_path = f"{location.bucket}/{location.key}"
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            "sub": object_path,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
        }
        try:
            token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        except (jwt.PyJWTError, NotImplementedError) as exc:
            raise SignedUrlError(details={"storage_uri": storage_uri}) from exc
        return f"{self._base_url}/{quote(object_path)}?token={token}"

    def ready(self) -> bool:
        return bool(self._secret)

    def verify_signed_token(self, token: str, object_path: str) -> dict[str, Any]:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            raise SignedUrlError("Invalid or expired download token.") from exc
        if payload.get("sub") != object_path:
            raise SignedUrlError("Download token does not match the requested object.")
        return payload
