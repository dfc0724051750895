from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ota_server.services.update_engine.identifiers import NIL_ID


class Platform(StrEnum):
    IOS = "ios"
    ANDROID = "android"


class UpdateStrategy(StrEnum):
    APP_VERSION = "appVersion"
    FINGERPRINT = "fingerprint"


class UpdateStatus(StrEnum):
    UPDATE = "UPDATE"
    ROLLBACK = "ROLLBACK"


@dataclass(frozen=True)
class BundleRecord:
    id: str
    platform: str
    channel: str
    storage_uri: str
    file_hash: str
    enabled: bool = True
    should_force_update: bool = False
    target_app_version: str | None = None
    fingerprint_hash: str | None = None
    rollout_percentage: int | None = None
    target_device_ids: tuple[str, ...] | None = None
    git_commit_hash: str | None = None
    message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def has_rollout_constraint(self) -> bool:
        if self.target_device_ids:
            return True
        return self.rollout_percentage is not None and self.rollout_percentage < 100


@dataclass(frozen=True)
class UpdateRequest:
    platform: str
    bundle_id: str
    strategy: UpdateStrategy
    channel: str = "production"
    min_bundle_id: str = NIL_ID
    app_version: str | None = None
    fingerprint_hash: str | None = None
    device_id: str | None = None

    @property
    def target(self) -> str:
        if self.strategy is UpdateStrategy.FINGERPRINT:
            return self.fingerprint_hash or ""
        return self.app_version or ""


@dataclass(frozen=True)
class UpdateInfo:
    id: str
    should_force_update: bool
    status: UpdateStatus
    message: str | None
    storage_uri: str | None
    file_hash: str | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "shouldForceUpdate": self.should_force_update,
            "status": self.status.value,
            "message": self.message,
            "storageUri": self.storage_uri,
            "fileHash": self.file_hash,
        }


NATIVE_ROLLBACK = UpdateInfo(
    id=NIL_ID,
    should_force_update=True,
    status=UpdateStatus.ROLLBACK,
    message=None,
    storage_uri=None,
    file_hash=None,
)
