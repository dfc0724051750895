from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ota_server.api.deps import require_sql_backend
from ota_server.api.response import envelope
from ota_server.db.session import get_db
from ota_server.schemas.device_event import DeviceEventIn
from ota_server.services import device_event_service

router = APIRouter(tags=["events"], dependencies=[Depends(require_sql_backend)])


@router.post("/track")
def track_device_event(request: Request, body: DeviceEventIn, db: Session = Depends(get_db)) -> dict:
    row = device_event_service.record_device_event(db, body)
    return envelope(request, {"id": row.id, "tracked": True})
