from collections.abc import Mapping

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ota_server.api.deps import get_bundle_selector
from ota_server.core.config import Settings, get_settings
from ota_server.services.update_engine.errors import InvalidUpdateRequestError
from ota_server.services.update_engine.identifiers import NIL_ID, is_valid_bundle_id, normalize_bundle_id
from ota_server.services.update_engine.records import Platform, UpdateRequest, UpdateStrategy
from ota_server.services.update_engine.selector import BundleSelector

router = APIRouter(tags=["updates"])

_STRATEGY_HEADERS = {
    UpdateStrategy.APP_VERSION: "x-app-version",
    UpdateStrategy.FINGERPRINT: "x-fingerprint-hash",
}


def _bundle_id_header(headers: Mapping[str, str], name: str, *, required: bool) -> str:
    raw = (headers.get(name) or "").strip()
    if not raw:
        if required:
            raise InvalidUpdateRequestError(f"Missing required header {name}.", details={"header": name})
        return NIL_ID
    if not is_valid_bundle_id(raw):
        raise InvalidUpdateRequestError(f"Header {name} is not a valid bundle id.", details={"header": name, "value": raw})
    return normalize_bundle_id(raw)


def parse_update_request(headers: Mapping[str, str], settings: Settings) -> UpdateRequest:
    """Build an ``UpdateRequest`` from device headers or raise a 400."""
    bundle_id = _bundle_id_header(headers, "x-bundle-id", required=True)
    min_bundle_id = _bundle_id_header(headers, "x-min-bundle-id", required=False)

    platform = (headers.get("x-app-platform") or "").strip().lower()
    if platform not in {member.value for member in Platform}:
        raise InvalidUpdateRequestError(
            "Header x-app-platform must be ios or android.",
            details={"header": "x-app-platform", "value": platform},
        )

    strategy = UpdateStrategy(settings.update_strategy)
    expected_header = _STRATEGY_HEADERS[strategy]
    sent = {name for name in _STRATEGY_HEADERS.values() if (headers.get(name) or "").strip()}
    if sent != {expected_header}:
        raise InvalidUpdateRequestError(
            f"This server resolves updates by {strategy.value}; send {expected_header} only.",
            details={"strategy": strategy.value, "received": sorted(sent)},
        )
    target = headers[expected_header].strip()

    channel = (headers.get("x-channel") or "").strip() or settings.default_channel
    device_id = (headers.get("x-device-id") or "").strip() or None
    return UpdateRequest(
        platform=platform,
        bundle_id=bundle_id,
        strategy=strategy,
        channel=channel,
        min_bundle_id=min_bundle_id,
        app_version=target if strategy is UpdateStrategy.APP_VERSION else None,
        fingerprint_hash=target if strategy is UpdateStrategy.FINGERPRINT else None,
        device_id=device_id,
    )


@router.get("/update")
def check_for_update(
    request: Request,
    settings: Settings = Depends(get_settings),
    selector: BundleSelector = Depends(get_bundle_selector),
) -> JSONResponse:
    update_request = parse_update_request(request.headers, settings)
    decision = selector.resolve(update_request)
    return JSONResponse(content=decision.to_payload() if decision is not None else None)
