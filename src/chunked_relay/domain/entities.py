"""Domain entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from chunked_relay.domain.session_states import SessionStatus


def total_parts_for(total_size: int, part_size: int) -> int:
    """Return `ceil(total_size / part_size)` using integer arithmetic."""

    if part_size <= 0:
        raise ValueError("part_size must be > 0")
    return -(-total_size // part_size)


def part_length(part_index: int, total_size: int, part_size: int) -> int:
    """Return the exact byte length of one part."""

    last_index = total_parts_for(total_size, part_size) - 1
    if part_index < 0 or part_index > last_index:
        raise ValueError(f"part_index {part_index} outside [0, {last_index}]")
    if part_index < last_index:
        return part_size
    return total_size - part_index * part_size


@dataclass(slots=True, frozen=True)
class Part:
    """Contiguous byte slice addressed by a stable 0-based index."""

    part_index: int
    data: bytes

    @property
    def length(self) -> int:
        return len(self.data)


@dataclass(slots=True, frozen=True)
class SourceMetadata:
    """Facts discovered about the source object.

    `total_size` is None only on a resumed open whose response reveals no
    total; first opens always resolve it or fail.
    """

    total_size: int | None
    filename: str
    supports_range: bool
    content_type: str | None = None


@dataclass(slots=True)
class TransferSession:
    """Persisted identity of one in-flight relay job (the checkpoint)."""

    session_id: str
    source_key: str
    total_size: int
    part_size: int
    filename: str
    notify_target: str
    ttl_seconds: int
    content_type: str | None = None
    status: SessionStatus = SessionStatus.STREAMING
    status_handle: str | None = None
    handoff_part_index: int = 0
    redispatch_count: int = 0
    last_error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def total_parts(self) -> int:
        return total_parts_for(self.total_size, self.part_size)

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True once the checkpoint outlived its TTL."""

        current = now or datetime.now(tz=UTC)
        return current >= self.expires_at

    def byte_offset(self, part_index: int) -> int:
        """Return the first source byte belonging to `part_index`."""

        return part_index * self.part_size


class ContentKind(StrEnum):
    """Advisory classification sent along with the compose request."""

    DOCUMENT = "DOCUMENT"
    VIDEO = "VIDEO"


@dataclass(slots=True, frozen=True)
class ContentAttributes:
    """Attributes advertised for the composed object."""

    kind: ContentKind
    mime_type: str
    supports_streaming: bool = False


@dataclass(slots=True, frozen=True)
class ContinuationRequest:
    """Resumption cursor threaded from one invocation to the next."""

    source_key: str
    notify_target: str
    next_part_index: int = 0
    status_handle: str | None = None
    session_id: str | None = None

    @property
    def is_fresh_start(self) -> bool:
        """A request at index 0 without a session id starts a new job."""

        return self.next_part_index == 0 and self.session_id is None


class InvocationStatus(StrEnum):
    """How one engine invocation ended."""

    WINDOW_EXPIRED = "WINDOW_EXPIRED"
    DONE = "DONE"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass(slots=True, frozen=True)
class InvocationOutcome:
    """Result returned to the host after one invocation."""

    status: InvocationStatus
    next_part_index: int
    parts_uploaded: int = 0
    session_id: str | None = None
    error: str | None = None


__all__ = [
    "ContentAttributes",
    "ContentKind",
    "ContinuationRequest",
    "InvocationOutcome",
    "InvocationStatus",
    "Part",
    "SourceMetadata",
    "TransferSession",
    "part_length",
    "total_parts_for",
]
