"""Checkpoint store implementations."""

from chunked_relay.infrastructure.checkpoints.in_memory_checkpoint_store import (
    InMemoryCheckpointStore,
)
from chunked_relay.infrastructure.checkpoints.postgres_checkpoint_store import (
    PostgresCheckpointStore,
)

__all__ = ["InMemoryCheckpointStore", "PostgresCheckpointStore"]
