"""Update resolution.

``BundleSelector.resolve`` turns one device check-in into a decision:
``None`` (stay put), ``UPDATE`` to a newer bundle, or ``ROLLBACK`` to an
older bundle or to the bundle embedded in the native build.
"""
from __future__ import annotations

import logging

from ota_server.core.metrics import record_update_decision
from ota_server.services.update_engine.fingerprint import filter_compatible_fingerprints
from ota_server.services.update_engine.identifiers import NIL_ID
from ota_server.services.update_engine.records import (
    NATIVE_ROLLBACK,
    BundleRecord,
    UpdateInfo,
    UpdateRequest,
    UpdateStatus,
    UpdateStrategy,
)
from ota_server.services.update_engine.rollback import find_rollback_target, needs_rollback
from ota_server.services.update_engine.rollout import is_device_eligible_for_update
from ota_server.services.update_engine.semver_ranges import filter_compatible_app_versions
from ota_server.storage.base import SignedUrlIssuer
from ota_server.stores.base import BundleStore

logger = logging.getLogger("ota.engine")


class BundleSelector:
    def __init__(self, store: BundleStore, issuer: SignedUrlIssuer, *, signed_url_ttl_seconds: int) -> None:
        self.store = store
        self.issuer = issuer
        self.signed_url_ttl_seconds = signed_url_ttl_seconds

    def load_candidates(self, request: UpdateRequest) -> list[BundleRecord]:
        """Enabled bundles the device may run, newest first."""
        targets = self.store.list_distinct_targets(
            platform=request.platform,
            channel=request.channel,
            min_bundle_id=request.min_bundle_id,
            strategy=request.strategy,
        )
        if request.strategy is UpdateStrategy.FINGERPRINT:
            compatible = filter_compatible_fingerprints(targets, request.target)
        else:
            compatible = filter_compatible_app_versions(targets, request.target)
        if not compatible:
            return []
        return self.store.find_compatible_bundles(
            platform=request.platform,
            channel=request.channel,
            min_bundle_id=request.min_bundle_id,
            strategy=request.strategy,
            compatible_targets=compatible,
        )

    def resolve(self, request: UpdateRequest) -> UpdateInfo | None:
        candidates = self.load_candidates(request)
        winner = _pick_winner(candidates, request.device_id)
        decision = self._classify(request, candidates, winner)

        status = decision.status.value if decision is not None else "NONE"
        record_update_decision(status=status, strategy=request.strategy.value)
        logger.info(
            "update decision",
            extra={
                "platform": request.platform,
                "channel": request.channel,
                "strategy": request.strategy.value,
                "bundle_id": request.bundle_id,
                "update_status": status,
                "update_bundle_id": decision.id if decision is not None else None,
            },
        )
        return decision

    def _classify(
        self,
        request: UpdateRequest,
        candidates: list[BundleRecord],
        winner: BundleRecord | None,
    ) -> UpdateInfo | None:
        current = request.bundle_id
        if winner is not None and (current == NIL_ID or winner.id > current):
            return self._signed(winner, UpdateStatus.UPDATE, force=winner.should_force_update)
        if winner is not None and winner.id == current:
            return None
        if current == NIL_ID:
            return None

        if not needs_rollback(candidates, current, min_bundle_id=request.min_bundle_id):
            return None
        target = find_rollback_target(candidates, current)
        if target is None:
            return NATIVE_ROLLBACK
        return self._signed(target, UpdateStatus.ROLLBACK, force=True)

    def _signed(self, bundle: BundleRecord, status: UpdateStatus, *, force: bool) -> UpdateInfo:
        return UpdateInfo(
            id=bundle.id,
            should_force_update=force,
            status=status,
            message=bundle.message,
            storage_uri=self.issuer.sign(bundle.storage_uri, self.signed_url_ttl_seconds),
            file_hash=bundle.file_hash,
        )


def _pick_winner(candidates: list[BundleRecord], device_id: str | None) -> BundleRecord | None:
    for bundle in candidates:
        # Clients that send no device id predate staged rollouts.
        if device_id is None or not bundle.has_rollout_constraint:
            return bundle
        if is_device_eligible_for_update(device_id, bundle.rollout_percentage, bundle.target_device_ids):
            return bundle
    return None
