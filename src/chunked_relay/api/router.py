"""Top-level API router composition."""

from fastapi import APIRouter

from chunked_relay.api.routes import health_router, management_router, relays_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(relays_router)
api_router.include_router(management_router)

__all__ = ["api_router"]
