from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ota_server.schemas.bundle import CatalogBundleIn
from ota_server.services.update_engine.errors import BundleStoreError
from ota_server.services.update_engine.identifiers import normalize_bundle_id
from ota_server.services.update_engine.records import BundleRecord, UpdateStrategy


def bundle_record_from_mapping(raw: Mapping[str, Any]) -> BundleRecord:
    row = CatalogBundleIn.model_validate(raw)
    return BundleRecord(
        id=row.id,
        platform=row.platform,
        channel=row.channel,
        storage_uri=row.storage_uri,
        file_hash=row.file_hash,
        enabled=row.enabled,
        should_force_update=row.should_force_update,
        target_app_version=row.target_app_version or None,
        fingerprint_hash=row.fingerprint_hash,
        rollout_percentage=row.rollout_percentage,
        target_device_ids=tuple(row.target_device_ids) if row.target_device_ids is not None else None,
        git_commit_hash=row.git_commit_hash,
        message=row.message,
        metadata=row.metadata,
    )


def _target_of(bundle: BundleRecord, strategy: UpdateStrategy) -> str | None:
    if strategy is UpdateStrategy.FINGERPRINT:
        return bundle.fingerprint_hash
    return bundle.target_app_version


class InMemoryBundleStore:
    def __init__(self, bundles: Iterable[BundleRecord] = ()) -> None:
        self._bundles: dict[str, BundleRecord] = {bundle.id: bundle for bundle in bundles}

    def _eligible(self, *, platform: str, channel: str, min_bundle_id: str, strategy: UpdateStrategy) -> list[BundleRecord]:
        return [
            bundle
            for bundle in self._bundles.values()
            if bundle.enabled
            and bundle.platform == platform
            and bundle.channel == channel
            and bundle.id >= min_bundle_id
            and _target_of(bundle, strategy)
        ]

    def list_distinct_targets(
        self,
        *,
        platform: str,
        channel: str,
        min_bundle_id: str,
        strategy: UpdateStrategy,
    ) -> list[str]:
        rows = self._eligible(platform=platform, channel=channel, min_bundle_id=min_bundle_id, strategy=strategy)
        return sorted({_target_of(bundle, strategy) for bundle in rows})

    def find_compatible_bundles(
        self,
        *,
        platform: str,
        channel: str,
        min_bundle_id: str,
        strategy: UpdateStrategy,
        compatible_targets: Sequence[str],
    ) -> list[BundleRecord]:
        allowed = set(compatible_targets)
        if not allowed:
            return []
        rows = self._eligible(platform=platform, channel=channel, min_bundle_id=min_bundle_id, strategy=strategy)
        matched = [bundle for bundle in rows if _target_of(bundle, strategy) in allowed]
        return sorted(matched, key=lambda bundle: bundle.id, reverse=True)

    def get_bundle(self, bundle_id: str) -> BundleRecord | None:
        return self._bundles.get(normalize_bundle_id(bundle_id))

    def ping(self) -> bool:
        return True


class JsonFileBundleStore(InMemoryBundleStore):
    """Read-only catalog kept as one JSON document, blob-database style.

    The document is either a list of bundles or ``{"bundles": [...]}``; keys
    may be snake_case or camelCase.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise BundleStoreError(
                "Bundle catalog could not be loaded.",
                details={"path": str(self.path), "reason": str(exc)},
            ) from exc
        rows = document.get("bundles", []) if isinstance(document, dict) else document
        try:
            records = [bundle_record_from_mapping(row) for row in rows]
        except (ValidationError, TypeError) as exc:
            raise BundleStoreError("Bundle catalog contains an invalid entry.", details={"path": str(self.path)}) from exc
        super().__init__(records)

    def ping(self) -> bool:
        return self.path.is_file()
