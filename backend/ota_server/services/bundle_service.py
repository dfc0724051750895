from __future__ import annotations

import json
import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ota_server.models.bundle import Bundle
from ota_server.schemas.bundle import BundleCreateIn, BundleListOut, BundleOut, BundlePatchIn, BundlePruneIn
from ota_server.services.update_engine.identifiers import generate_bundle_id, normalize_bundle_id
from ota_server.services.update_engine.records import UpdateStrategy
from ota_server.services.update_engine.rollout import parse_target_device_ids
from ota_server.services.update_engine.semver_ranges import InvalidRangeError, parse_range

logger = logging.getLogger("ota.bundles")


def bundle_to_out(row: Bundle) -> BundleOut:
    try:
        metadata = json.loads(row.metadata_json or "{}")
    except json.JSONDecodeError:
        metadata = {}
    device_ids = parse_target_device_ids(row.target_device_ids_json)
    return BundleOut(
        id=row.id,
        platform=row.platform,
        channel=row.channel,
        target_app_version=row.target_app_version,
        fingerprint_hash=row.fingerprint_hash,
        should_force_update=row.should_force_update,
        enabled=row.enabled,
        storage_uri=row.storage_uri,
        file_hash=row.file_hash,
        git_commit_hash=row.git_commit_hash,
        message=row.message,
        metadata=metadata if isinstance(metadata, dict) else {},
        rollout_percentage=row.rollout_percentage,
        target_device_ids=list(device_ids) if device_ids is not None else None,
        created_at=row.created_at,
    )


def _validate_targeting(body: BundleCreateIn, strategy: str) -> None:
    has_version = bool(body.target_app_version)
    has_fingerprint = bool(body.fingerprint_hash)
    if has_version == has_fingerprint:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Exactly one of target_app_version or fingerprint_hash is required",
        )
    if strategy == UpdateStrategy.FINGERPRINT and not has_fingerprint:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Server uses the fingerprint strategy; fingerprint_hash is required",
        )
    if strategy == UpdateStrategy.APP_VERSION and not has_version:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Server uses the appVersion strategy; target_app_version is required",
        )
    if has_version:
        try:
            parse_range(body.target_app_version)
        except InvalidRangeError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"target_app_version is not a valid range: {exc}",
            ) from exc


def _new_row(body: BundleCreateIn, bundle_id: str) -> Bundle:
    return Bundle(
        id=bundle_id,
        platform=body.platform,
        channel=body.channel,
        target_app_version=body.target_app_version or None,
        fingerprint_hash=body.fingerprint_hash or None,
        should_force_update=body.should_force_update,
        enabled=body.enabled,
        storage_uri=body.storage_uri,
        file_hash=body.file_hash,
        git_commit_hash=body.git_commit_hash,
        message=body.message,
        metadata_json=json.dumps(body.metadata),
        rollout_percentage=body.rollout_percentage,
        target_device_ids_json=json.dumps(body.target_device_ids) if body.target_device_ids is not None else None,
    )


def create_bundles(db: Session, bodies: list[BundleCreateIn], *, strategy: str) -> list[Bundle]:
    """Insert every bundle or none of them."""
    if not bodies:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="No bundles to create")
    for body in bodies:
        _validate_targeting(body, strategy)
    bundle_ids = [body.id or generate_bundle_id() for body in bodies]
    if len(set(bundle_ids)) != len(bundle_ids):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Bundle ids repeat within the request")
    existing = db.query(Bundle.id).filter(Bundle.id.in_(bundle_ids)).all()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": "Bundle id already exists", "ids": sorted(row[0] for row in existing)},
        )

    rows = [_new_row(body, bundle_id) for body, bundle_id in zip(bodies, bundle_ids)]
    db.add_all(rows)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Bundle id already exists") from exc
    for row in rows:
        db.refresh(row)
        logger.info("bundle created", extra={"bundle_id": row.id, "platform": row.platform, "channel": row.channel})
    return rows


def list_bundles(
    db: Session,
    *,
    channel: str | None = None,
    platform: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> BundleListOut:
    query = db.query(Bundle)
    if channel:
        query = query.filter(Bundle.channel == channel)
    if platform:
        query = query.filter(Bundle.platform == platform)
    total = query.count()
    rows = query.order_by(Bundle.id.desc()).offset(offset).limit(limit).all()
    return BundleListOut(
        items=[bundle_to_out(row) for row in rows],
        total=total,
        limit=limit,
        offset=offset,
        has_next=offset + len(rows) < total,
        has_previous=offset > 0,
    )


def get_bundle_or_404(db: Session, bundle_id: str) -> Bundle:
    row = db.get(Bundle, normalize_bundle_id(bundle_id))
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bundle not found")
    return row


def update_bundle(db: Session, bundle_id: str, body: BundlePatchIn) -> Bundle:
    row = get_bundle_or_404(db, bundle_id)
    changes = body.model_dump(exclude_unset=True)
    if "enabled" in changes:
        if changes["enabled"] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="enabled cannot be null")
        row.enabled = changes["enabled"]
    if "should_force_update" in changes:
        if changes["should_force_update"] is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="should_force_update cannot be null",
            )
        row.should_force_update = changes["should_force_update"]
    if "message" in changes:
        row.message = changes["message"]
    if "rollout_percentage" in changes:
        row.rollout_percentage = changes["rollout_percentage"]
    if "target_device_ids" in changes:
        device_ids = changes["target_device_ids"]
        row.target_device_ids_json = json.dumps(device_ids) if device_ids is not None else None
    db.commit()
    db.refresh(row)
    logger.info("bundle updated", extra={"bundle_id": row.id, "platform": row.platform, "channel": row.channel})
    return row


def delete_bundle(db: Session, bundle_id: str) -> None:
    row = get_bundle_or_404(db, bundle_id)
    db.delete(row)
    db.commit()
    logger.info("bundle deleted", extra={"bundle_id": row.id})


def prune_disabled_bundles(db: Session, body: BundlePruneIn) -> list[str]:
    query = db.query(Bundle).filter(Bundle.enabled.is_(False))
    if body.channel:
        query = query.filter(Bundle.channel == body.channel)
    if body.platform:
        query = query.filter(Bundle.platform == body.platform)
    rows = query.order_by(Bundle.id.asc()).all()
    deleted_ids = [row.id for row in rows]
    for row in rows:
        db.delete(row)
    db.commit()
    logger.info("pruned %d disabled bundles", len(deleted_ids))
    return deleted_ids


def list_channels(db: Session) -> list[str]:
    rows = db.query(Bundle.channel).distinct().order_by(Bundle.channel.asc()).all()
    return [row[0] for row in rows]
