from __future__ import annotations

from collections.abc import Sequence

from ota_server.services.update_engine.identifiers import NIL_ID
from ota_server.services.update_engine.records import BundleRecord


def needs_rollback(
    candidates: Sequence[BundleRecord],
    current_bundle_id: str,
    *,
    min_bundle_id: str = NIL_ID,
) -> bool:
    """Whether the bundle a device runs is no longer a valid place to stay.

    ``candidates`` is the eligible set for the device's platform, channel,
    targeting value and cursor.
    """
    if current_bundle_id == NIL_ID:
        return False
    # At or below the cursor the device runs the bundle embedded in its binary.
    if current_bundle_id <= min_bundle_id:
        return False
    if not candidates:
        return True
    current = next((bundle for bundle in candidates if bundle.id == current_bundle_id), None)
    if current is None:
        return any(bundle.enabled and bundle.id < current_bundle_id for bundle in candidates)
    return not current.enabled


def find_rollback_target(candidates: Sequence[BundleRecord], current_bundle_id: str) -> BundleRecord | None:
    older = [bundle for bundle in candidates if bundle.enabled and bundle.id < current_bundle_id]
    if not older:
        return None
    return max(older, key=lambda bundle: bundle.id)
