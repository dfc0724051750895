from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from sqlalchemy.orm import Session

from ota_server.core.config import Settings
from ota_server.services.update_engine.errors import BundleStoreError
from ota_server.stores.base import BundleStore
from ota_server.stores.memory import InMemoryBundleStore, JsonFileBundleStore
from ota_server.stores.sqlalchemy_store import SqlAlchemyBundleStore


@lru_cache(maxsize=8)
def _json_store(path: str, mtime_ns: int, size: int) -> JsonFileBundleStore:
    return JsonFileBundleStore(path)


def _catalog_signature(path: str) -> tuple[int, int]:
    try:
        stat = Path(path).stat()
    except OSError as exc:
        raise BundleStoreError(
            "Bundle catalog could not be loaded.",
            details={"path": path, "reason": str(exc)},
        ) from exc
    return stat.st_mtime_ns, stat.st_size


def get_bundle_store(settings: Settings, db: Session) -> BundleStore:
    if settings.database_backend == "json":
        # Reloaded whenever the file changes on disk.
        path = settings.bundle_catalog_path
        return _json_store(path, *_catalog_signature(path))
    if settings.database_backend == "sql":
        return SqlAlchemyBundleStore(db)
    raise ValueError(f"Unsupported database backend: {settings.database_backend}")


__all__ = [
    "BundleStore",
    "InMemoryBundleStore",
    "JsonFileBundleStore",
    "SqlAlchemyBundleStore",
    "get_bundle_store",
]
