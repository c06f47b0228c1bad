"""Source reader implementations."""

from chunked_relay.infrastructure.sources.http_source_reader import (
    HttpSourceReader,
    filename_from_response,
)

__all__ = ["HttpSourceReader", "filename_from_response"]
