from __future__ import annotations

import json
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from ota_server.models.device_event import DeviceEvent
from ota_server.schemas.device_event import DeviceEventIn, RolloutStatsOut

logger = logging.getLogger("ota.events")


def record_device_event(db: Session, body: DeviceEventIn) -> DeviceEvent:
    row = DeviceEvent(
        device_id=body.device_id,
        bundle_id=body.bundle_id,
        event_type=body.event_type,
        platform=body.platform,
        app_version=body.app_version,
        channel=body.channel,
        metadata_json=json.dumps(body.metadata),
    )
    db.add(row)
    db.commit()
    logger.info(
        "device event recorded",
        extra={
            "bundle_id": row.bundle_id,
            "event_type": row.event_type,
            "platform": row.platform,
            "channel": row.channel,
        },
    )
    return row


def get_rollout_stats(db: Session, bundle_id: str) -> RolloutStatsOut:
    """Summarize PROMOTED/RECOVERED reports for one bundle.

    ``success_rate`` is the promoted share of all reports, as a percentage
    rounded to two decimals, and 0 when nothing was reported yet.
    """
    counts = dict(
        db.query(DeviceEvent.event_type, func.count(DeviceEvent.id))
        .filter(DeviceEvent.bundle_id == bundle_id)
        .group_by(DeviceEvent.event_type)
        .all()
    )
    total_devices = (
        db.query(func.count(func.distinct(DeviceEvent.device_id)))
        .filter(DeviceEvent.bundle_id == bundle_id)
        .scalar()
    )
    promoted = counts.get("PROMOTED", 0)
    recovered = counts.get("RECOVERED", 0)
    reported = promoted + recovered
    return RolloutStatsOut(
        bundle_id=bundle_id,
        total_devices=total_devices or 0,
        promoted_count=promoted,
        recovered_count=recovered,
        success_rate=round(promoted / reported * 100, 2) if reported else 0.0,
    )
