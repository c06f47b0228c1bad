"""Dependency providers for FastAPI routes."""

from functools import lru_cache

from chunked_relay.application.services import RelayService
from chunked_relay.bootstrap import build_relay_service
from chunked_relay.config import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return singleton settings."""

    return Settings()


@lru_cache(maxsize=1)
def get_relay_service() -> RelayService:
    """Return singleton service graph."""

    return build_relay_service(get_settings())


__all__ = ["get_relay_service", "get_settings"]
