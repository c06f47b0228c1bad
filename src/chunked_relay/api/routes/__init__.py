"""Route modules public API."""

from chunked_relay.api.routes.health import router as health_router
from chunked_relay.api.routes.management import router as management_router
from chunked_relay.api.routes.relays import router as relays_router

__all__ = ["health_router", "management_router", "relays_router"]
