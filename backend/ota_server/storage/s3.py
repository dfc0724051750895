from __future__ import annotations

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ota_server.services.update_engine.errors import SignedUrlError
from ota_server.storage.base import parse_storage_uri


class S3SignedUrlIssuer:
    def __init__(self, *, region: str = "", endpoint_url: str = "", client=None) -> None:
        self._client = client or boto3.client(
            "s3",
            region_name=region or None,
            endpoint_url=endpoint_url or None,
        )

    def sign(self, storage_uri: str, ttl_seconds: int) -> str:
        location = parse_storage_uri(storage_uri)
        if location.scheme != "s3":
            raise SignedUrlError("S3 storage only signs s3:// URIs.", details={"storage_uri": storage_uri})
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": location.bucket, "Key": location.key},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise SignedUrlError(details={"storage_uri": storage_uri, "reason": str(exc)}) from exc

    def ready(self) -> bool:
        return self._client is not None
