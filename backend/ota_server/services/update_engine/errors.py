from __future__ import annotations

from typing import Any


class UpdateEngineError(Exception):
    status_code = 500

    def __init__(self, message: str, *, error_code: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class InvalidUpdateRequestError(UpdateEngineError):
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, error_code="invalid_update_request", details=details)


class BundleStoreError(UpdateEngineError):
    def __init__(self, message: str = "Bundle store unavailable.", *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, error_code="bundle_store_unavailable", details=details)


class SignedUrlError(UpdateEngineError):
    def __init__(self, message: str = "Could not issue a download URL.", *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, error_code="signed_url_failed", details=details)
