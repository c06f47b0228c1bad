"""Destination big-object client implementations."""

from chunked_relay.infrastructure.destination.http_big_object_client import (
    DestinationClientError,
    HttpBigObjectClient,
)
from chunked_relay.infrastructure.destination.in_memory_big_object_client import (
    ComposedObject,
    InMemoryBigObjectClient,
)

__all__ = [
    "ComposedObject",
    "DestinationClientError",
    "HttpBigObjectClient",
    "InMemoryBigObjectClient",
]
