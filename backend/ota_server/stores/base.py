from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from ota_server.services.update_engine.records import BundleRecord, UpdateStrategy


class BundleStore(Protocol):
    """Read side of a bundle database, as the update engine consumes it.

    Semver ranges have no native operator on most backends, so resolution is
    two-step: fetch the distinct targeting values, filter them in Python, then
    fetch rows by exact match on the compatible subset.
    """

    def list_distinct_targets(
        self,
        *,
        platform: str,
        channel: str,
        min_bundle_id: str,
        strategy: UpdateStrategy,
    ) -> list[str]:
        ...

    def find_compatible_bundles(
        self,
        *,
        platform: str,
        channel: str,
        min_bundle_id: str,
        strategy: UpdateStrategy,
        compatible_targets: Sequence[str],
    ) -> list[BundleRecord]:
        """Enabled bundles whose targeting value is in ``compatible_targets``, newest first."""
        ...

    def get_bundle(self, bundle_id: str) -> BundleRecord | None:
        ...

    def ping(self) -> bool:
        ...
