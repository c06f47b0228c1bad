"""HTTP API layer."""

from chunked_relay.api.router import api_router

__all__ = ["api_router"]
