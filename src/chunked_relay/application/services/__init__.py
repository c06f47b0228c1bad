"""Application services public API."""

from chunked_relay.application.services.relay_service import RelayService

__all__ = ["RelayService"]
