from __future__ import annotations

import json
from collections.abc import Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ota_server.models.bundle import Bundle
from ota_server.services.update_engine.errors import BundleStoreError
from ota_server.services.update_engine.identifiers import normalize_bundle_id
from ota_server.services.update_engine.records import BundleRecord, UpdateStrategy
from ota_server.services.update_engine.rollout import parse_target_device_ids


def bundle_record_from_row(row: Bundle) -> BundleRecord:
    try:
        metadata = json.loads(row.metadata_json or "{}")
    except json.JSONDecodeError:
        metadata = {}
    return BundleRecord(
        id=row.id,
        platform=row.platform,
        channel=row.channel,
        storage_uri=row.storage_uri,
        file_hash=row.file_hash,
        enabled=bool(row.enabled),
        should_force_update=bool(row.should_force_update),
        target_app_version=row.target_app_version,
        fingerprint_hash=row.fingerprint_hash,
        rollout_percentage=row.rollout_percentage,
        target_device_ids=parse_target_device_ids(row.target_device_ids_json),
        git_commit_hash=row.git_commit_hash,
        message=row.message,
        metadata=metadata if isinstance(metadata, dict) else {},
    )


class SqlAlchemyBundleStore:
    def __init__(self, db: Session) -> None:
        self._db = db

    @staticmethod
    def _target_column(strategy: UpdateStrategy):
        if strategy is UpdateStrategy.FINGERPRINT:
            return Bundle.fingerprint_hash
        return Bundle.target_app_version

    def _eligible_filters(self, *, platform: str, channel: str, min_bundle_id: str, strategy: UpdateStrategy) -> list:
        return [
            Bundle.enabled.is_(True),
            Bundle.platform == platform,
            Bundle.channel == channel,
            Bundle.id >= min_bundle_id,
            self._target_column(strategy).is_not(None),
        ]

    def list_distinct_targets(
        self,
        *,
        platform: str,
        channel: str,
        min_bundle_id: str,
        strategy: UpdateStrategy,
    ) -> list[str]:
        column = self._target_column(strategy)
        filters = self._eligible_filters(platform=platform, channel=channel, min_bundle_id=min_bundle_id, strategy=strategy)
        try:
            rows = self._db.query(column).filter(*filters).distinct().all()
        except SQLAlchemyError as exc:
            raise BundleStoreError(details={"operation": "list_distinct_targets"}) from exc
        return sorted(value for (value,) in rows if value)

    def find_compatible_bundles(
        self,
        *,
        platform: str,
        channel: str,
        min_bundle_id: str,
        strategy: UpdateStrategy,
        compatible_targets: Sequence[str],
    ) -> list[BundleRecord]:
        if not compatible_targets:
            return []
        filters = self._eligible_filters(platform=platform, channel=channel, min_bundle_id=min_bundle_id, strategy=strategy)
        filters.append(self._target_column(strategy).in_(list(compatible_targets)))
        try:
            rows = self._db.query(Bundle).filter(*filters).order_by(Bundle.id.desc()).all()
        except SQLAlchemyError as exc:
            raise BundleStoreError(details={"operation": "find_compatible_bundles"}) from exc
        return [bundle_record_from_row(row) for row in rows]

    def get_bundle(self, bundle_id: str) -> BundleRecord | None:
        try:
            row = self._db.get(Bundle, normalize_bundle_id(bundle_id))
        except SQLAlchemyError as exc:
            raise BundleStoreError(details={"operation": "get_bundle"}) from exc
        return bundle_record_from_row(row) if row is not None else None

    def ping(self) -> bool:
        try:
            self._db.execute(text("SELECT 1"))
        except SQLAlchemyError:
            return False
        return True
