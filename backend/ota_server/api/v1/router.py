from fastapi import APIRouter

from ota_server.api.v1 import bundles, events, health, updates


def build_api_router() -> APIRouter:
    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(updates.router)
    api_router.include_router(events.router)
    api_router.include_router(bundles.router)
    api_router.include_router(bundles.channels_router)
    return api_router


api_router = build_api_router()
