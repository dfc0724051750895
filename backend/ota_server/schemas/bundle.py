import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ota_server.services.update_engine.fingerprint import is_valid_fingerprint
from ota_server.services.update_engine.identifiers import NIL_ID, is_valid_bundle_id, normalize_bundle_id
from ota_server.services.update_engine.rollout import parse_target_device_ids


class BundleCreateIn(BaseModel):
    id: str | None = None
    platform: Literal["ios", "android"]
    channel: str = Field(default="production", min_length=1, max_length=120)
    target_app_version: str | None = Field(default=None, max_length=255)
    fingerprint_hash: str | None = None
    should_force_update: bool = False
    enabled: bool = True
    storage_uri: str = Field(min_length=1)
    file_hash: str = Field(min_length=1, max_length=128)
    git_commit_hash: str | None = Field(default=None, max_length=64)
    message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    rollout_percentage: int | None = Field(default=None, ge=0, le=100)
    target_device_ids: list[str] | None = None

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not is_valid_bundle_id(value) or normalize_bundle_id(value) == NIL_ID:
            raise ValueError("id must be a lowercase UUID other than the nil id")
        return normalize_bundle_id(value)

    @field_validator("fingerprint_hash")
    @classmethod
    def _check_fingerprint(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not is_valid_fingerprint(value):
            raise ValueError("fingerprint_hash must be 40 hexadecimal characters")
        return value.lower()


class CatalogBundleIn(BundleCreateIn):
    """One row of a JSON bundle catalog; keys may be snake_case or camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str

    @field_validator("target_device_ids", mode="before")
    @classmethod
    def _decode_device_ids(cls, value: Any) -> Any:
        if isinstance(value, str):
            device_ids = parse_target_device_ids(value)
            return list(device_ids) if device_ids is not None else None
        return value

    @field_validator("metadata", mode="before")
    @classmethod
    def _decode_metadata(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            return json.loads(value) if value.strip() else {}
        return value


class BundlePatchIn(BaseModel):
    enabled: bool | None = None
    message: str | None = None
    should_force_update: bool | None = None
    rollout_percentage: int | None = Field(default=None, ge=0, le=100)
    target_device_ids: list[str] | None = None


class BundlePruneIn(BaseModel):
    channel: str | None = None
    platform: Literal["ios", "android"] | None = None


class BundleOut(BaseModel):
    id: str
    platform: str
    channel: str
    target_app_version: str | None
    fingerprint_hash: str | None
    should_force_update: bool
    enabled: bool
    storage_uri: str
    file_hash: str
    git_commit_hash: str | None
    message: str | None
    metadata: dict[str, Any]
    rollout_percentage: int | None
    target_device_ids: list[str] | None
    created_at: datetime


class BundleListOut(BaseModel):
    items: list[BundleOut]
    total: int
    limit: int
    offset: int
    has_next: bool
    has_previous: bool
