import hmac

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ota_server.core.config import Settings, get_settings
from ota_server.db.session import get_db
from ota_server.services.update_engine.selector import BundleSelector
from ota_server.storage import SignedUrlIssuer
from ota_server.stores import BundleStore, get_bundle_store

admin_bearer = HTTPBearer(auto_error=False)


def get_store(settings: Settings = Depends(get_settings), db: Session = Depends(get_db)) -> BundleStore:
    return get_bundle_store(settings, db)


def get_signed_url_issuer(request: Request) -> SignedUrlIssuer:
    return request.app.state.signed_url_issuer


def get_bundle_selector(
    settings: Settings = Depends(get_settings),
    store: BundleStore = Depends(get_store),
    issuer: SignedUrlIssuer = Depends(get_signed_url_issuer),
) -> BundleSelector:
    return BundleSelector(store, issuer, signed_url_ttl_seconds=settings.signed_url_ttl_seconds)


def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(admin_bearer),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = settings.admin_api_token.strip()
    if not expected:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Bundle administration is disabled")
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin token")


def require_sql_backend(settings: Settings = Depends(get_settings)) -> None:
    if settings.database_backend != "sql":
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail=f"Not supported by the {settings.database_backend} database backend",
        )
