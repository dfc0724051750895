from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ota_server.api.deps import get_store, require_admin_token, require_sql_backend
from ota_server.api.response import envelope
from ota_server.core.config import Settings, get_settings
from ota_server.db.session import get_db
from ota_server.schemas.bundle import BundleCreateIn, BundlePatchIn, BundlePruneIn
from ota_server.services import bundle_service, device_event_service
from ota_server.services.update_engine.identifiers import normalize_bundle_id
from ota_server.stores import BundleStore

admin_dependencies = [Depends(require_admin_token), Depends(require_sql_backend)]
router = APIRouter(prefix="/bundles", tags=["bundles"], dependencies=admin_dependencies)
channels_router = APIRouter(tags=["bundles"], dependencies=admin_dependencies)


@router.get("")
def list_bundles(
    request: Request,
    channel: str | None = Query(default=None),
    platform: str | None = Query(default=None, pattern="^(ios|android)$"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> dict:
    page = bundle_service.list_bundles(db, channel=channel, platform=platform, limit=limit, offset=offset)
    return envelope(request, page.model_dump(mode="json"))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_bundles(
    request: Request,
    body: BundleCreateIn | list[BundleCreateIn],
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> dict:
    bodies = body if isinstance(body, list) else [body]
    rows = bundle_service.create_bundles(db, bodies, strategy=settings.update_strategy)
    created = [bundle_service.bundle_to_out(row).model_dump(mode="json") for row in rows]
    return envelope(request, created if isinstance(body, list) else created[0])


@router.post("/prune")
def prune_bundles(request: Request, body: BundlePruneIn, db: Session = Depends(get_db)) -> dict:
    deleted_ids = bundle_service.prune_disabled_bundles(db, body)
    return envelope(request, {"deleted_ids": deleted_ids, "deleted_count": len(deleted_ids)})


@router.get("/{bundle_id}")
def get_bundle(request: Request, bundle_id: str, db: Session = Depends(get_db)) -> dict:
    row = bundle_service.get_bundle_or_404(db, bundle_id)
    return envelope(request, bundle_service.bundle_to_out(row).model_dump(mode="json"))


@router.get("/{bundle_id}/rollout-stats")
def get_rollout_stats(
    request: Request,
    bundle_id: str,
    store: BundleStore = Depends(get_store),
    db: Session = Depends(get_db),
) -> dict:
    bundle = store.get_bundle(bundle_id)
    if bundle is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bundle not found")
    stats = device_event_service.get_rollout_stats(db, bundle.id)
    return envelope(request, stats.model_dump(mode="json"))


@router.patch("/{bundle_id}")
def update_bundle(request: Request, bundle_id: str, body: BundlePatchIn, db: Session = Depends(get_db)) -> dict:
    row = bundle_service.update_bundle(db, bundle_id, body)
    return envelope(request, bundle_service.bundle_to_out(row).model_dump(mode="json"))


@router.delete("/{bundle_id}")
def delete_bundle(request: Request, bundle_id: str, db: Session = Depends(get_db)) -> dict:
    bundle_service.delete_bundle(db, bundle_id)
    return envelope(request, {"id": normalize_bundle_id(bundle_id), "deleted": True})


@channels_router.get("/channels")
def list_channels(request: Request, db: Session = Depends(get_db)) -> dict:
    return envelope(request, {"channels": bundle_service.list_channels(db)})
