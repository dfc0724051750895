from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse

from ota_server.api.deps import get_signed_url_issuer
from ota_server.core.config import Settings, get_settings
from ota_server.services.update_engine.errors import SignedUrlError
from ota_server.storage import JwtSignedUrlIssuer, SignedUrlIssuer

router = APIRouter(tags=["downloads"])


def _local_file(root: str, object_path: str) -> Path | None:
    base = Path(root).resolve()
    candidate = (base / object_path).resolve()
    if not candidate.is_relative_to(base) or not candidate.is_file():
        return None
    return candidate


@router.get("/storage/{object_path:path}")
def download_bundle(
    object_path: str,
    token: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
    issuer: SignedUrlIssuer = Depends(get_signed_url_issuer),
) -> FileResponse:
    """Serve a bundle archive behind a link minted by ``JwtSignedUrlIssuer``.

    Missing token is a 400, a bad or expired one a 403, an absent file a 404.
    """
    if not isinstance(issuer, JwtSignedUrlIssuer) or not settings.storage_local_root:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Local downloads are disabled")
    object_path = object_path.lstrip("/")
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing token")
    try:
        issuer.verify_signed_token(token, object_path)
    except SignedUrlError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc

    path = _local_file(settings.storage_local_root, object_path)
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(path, media_type="application/octet-stream", filename=path.name)
