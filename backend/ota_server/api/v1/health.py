from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ota_server.api.deps import get_signed_url_issuer, get_store
from ota_server.api.response import envelope
from ota_server.services.update_engine.errors import BundleStoreError
from ota_server.storage import SignedUrlIssuer
from ota_server.stores import BundleStore

router = APIRouter(tags=["ops"])


@router.get("/health")
def health(request: Request) -> dict:
    return envelope(request, {"status": "ok"})


@router.get("/health/readiness")
def readiness(
    request: Request,
    store: BundleStore = Depends(get_store),
    issuer: SignedUrlIssuer = Depends(get_signed_url_issuer),
) -> JSONResponse:
    try:
        db_ok = store.ping()
    except BundleStoreError:
        db_ok = False
    storage_ok = issuer.ready()
    overall_ok = db_ok and storage_ok
    payload = envelope(
        request,
        {
            "status": "ready" if overall_ok else "degraded",
            "dependencies": {"database": db_ok, "storage": storage_ok},
        },
    )
    return JSONResponse(status_code=200 if overall_ok else 503, content=payload)
