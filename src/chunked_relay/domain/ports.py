"""Ports for checkpoints, source reads, destination uploads, and handoff."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from chunked_relay.domain.entities import (
    ContentAttributes,
    ContinuationRequest,
    SourceMetadata,
    TransferSession,
)
from chunked_relay.domain.session_states import SessionStatus


@dataclass(slots=True)
class SourceStream:
    """Open source read: discovered metadata plus the remaining byte stream."""

    metadata: SourceMetadata
    start_byte: int
    chunks: AsyncIterator[bytes]


class CheckpointStore(Protocol):
    """Durable key -> session map with expiry and last-write-wins semantics."""

    async def get(self, source_key: str) -> TransferSession | None:
        """Return the live checkpoint for a source key, or None when absent/expired."""

    async def put(self, session: TransferSession) -> None:
        """Create or overwrite the checkpoint keyed by `session.source_key`."""

    async def delete(self, source_key: str, *, session_id: str) -> bool:
        """Remove the checkpoint only while it still belongs to `session_id`."""

    async def compare_and_set_status(
        self,
        source_key: str,
        *,
        session_id: str,
        expected: frozenset[SessionStatus],
        new_status: SessionStatus,
        last_error: str | None = None,
    ) -> bool:
        """Atomically move status when the stored session and status still match."""

    async def record_handoff(
        self,
        source_key: str,
        *,
        session_id: str,
        part_index: int,
        expected: frozenset[SessionStatus],
        count_redispatch: bool = False,
    ) -> bool:
        """Mark the session WINDOW_EXPIRED at `part_index` and refresh `updated_at`.

        Advisory bookkeeping for the stale-session reaper; the authoritative
        cursor travels in the continuation payload.
        """

    async def list_sessions(self) -> list[TransferSession]:
        """Return all live checkpoints."""


class SourceReader(Protocol):
    """Byte-range HTTP read port against the source object."""

    def open(
        self,
        url: str,
        start_byte: int = 0,
    ) -> AbstractAsyncContextManager[SourceStream]:
        """Open the source at `start_byte` and expose metadata + byte stream."""


class BigObjectClient(Protocol):
    """Destination part-indexed upload + compose capability."""

    async def open_session(self, *, filename: str, total_parts: int) -> str:
        """Allocate a new upload-session handle."""

    async def save_part(
        self,
        session_id: str,
        part_index: int,
        total_parts: int,
        data: bytes,
    ) -> None:
        """Store one part; re-saving an index overwrites it."""

    async def compose(
        self,
        session_id: str,
        *,
        total_parts: int,
        filename: str,
        attributes: ContentAttributes,
        notify_target: str,
    ) -> None:
        """Assemble all parts into the final object and deliver it."""


class ContinuationDispatcher(Protocol):
    """Hands the resumption cursor to a new engine invocation."""

    async def dispatch(self, request: ContinuationRequest) -> bool:
        """Return True when the next invocation accepted the cursor."""


@runtime_checkable
class ManagedContinuationDispatcher(ContinuationDispatcher, Protocol):
    """Dispatcher owning a background worker tied to service lifecycle."""

    async def start(self) -> None:
        """Start background processing."""

    async def stop(self) -> None:
        """Stop background processing."""


class Notifier(Protocol):
    """Outbound notification channel."""

    async def send_text(self, target: str, text: str) -> str | None:
        """Send a message and return a handle usable for later edits."""

    async def edit_text(self, target: str, handle: str, text: str) -> None:
        """Replace the text of a previously sent message."""


__all__ = [
    "BigObjectClient",
    "CheckpointStore",
    "ContinuationDispatcher",
    "ManagedContinuationDispatcher",
    "Notifier",
    "SourceReader",
    "SourceStream",
]
