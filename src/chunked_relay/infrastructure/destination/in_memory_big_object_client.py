"""In-memory big-object destination for local development and tests."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from chunked_relay.domain.entities import ContentAttributes
from chunked_relay.domain.ports import BigObjectClient
from chunked_relay.infrastructure.destination.http_big_object_client import (
    DestinationClientError,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ComposedObject:
    """Object assembled by a successful compose."""

    session_id: str
    filename: str
    data: bytes
    attributes: ContentAttributes
    notify_target: str


@dataclass(slots=True)
class _UploadSession:
    filename: str
    total_parts: int
    parts: dict[int, bytes] = field(default_factory=dict)


class InMemoryBigObjectClient(BigObjectClient):
    """Keep parts in memory and concatenate them by index on compose.

    Parts of a session are released once it is composed, and only the
    `max_composed_objects` most recent composed objects are retained.
    """

    def __init__(self, *, max_composed_objects: int = 16) -> None:
        self._sessions: dict[str, _UploadSession] = {}
        self._composed: dict[str, ComposedObject] = {}
        self._max_composed_objects = max(max_composed_objects, 1)
        self._lock = asyncio.Lock()

    async def open_session(self, *, filename: str, total_parts: int) -> str:
        session_id = uuid.uuid4().hex
        async with self._lock:
            self._sessions[session_id] = _UploadSession(
                filename=filename,
                total_parts=total_parts,
            )
        return session_id

    async def save_part(
        self,
        session_id: str,
        part_index: int,
        total_parts: int,
        data: bytes,
    ) -> None:
        async with self._lock:
            upload = self._require_session(session_id)
            if total_parts != upload.total_parts:
                raise DestinationClientError(
                    f"Part {part_index} declares {total_parts} total parts, "
                    f"session has {upload.total_parts}."
                )
            if not 0 <= part_index < upload.total_parts:
                raise DestinationClientError(
                    f"Part index {part_index} outside [0, {upload.total_parts})."
                )
            upload.parts[part_index] = bytes(data)

    async def compose(
        self,
        session_id: str,
        *,
        total_parts: int,
        filename: str,
        attributes: ContentAttributes,
        notify_target: str,
    ) -> None:
        async with self._lock:
            if session_id in self._composed:
                raise DestinationClientError(f"Session '{session_id}' is already composed.")
            upload = self._require_session(session_id)
            missing = [index for index in range(total_parts) if index not in upload.parts]
            if missing:
                raise DestinationClientError(
                    f"Cannot compose session '{session_id}': missing parts {missing[:10]}."
                )
            self._composed[session_id] = ComposedObject(
                session_id=session_id,
                filename=filename,
                data=b"".join(upload.parts[index] for index in range(total_parts)),
                attributes=attributes,
                notify_target=notify_target,
            )
            del self._sessions[session_id]
            while len(self._composed) > self._max_composed_objects:
                self._composed.pop(next(iter(self._composed)))
        logger.info("Composed '%s' from %s parts (session '%s').", filename, total_parts, session_id)

    def composed(self, session_id: str) -> ComposedObject | None:
        """Return the composed object for a session, if any."""

        return self._composed.get(session_id)

    def _require_session(self, session_id: str) -> _UploadSession:
        upload = self._sessions.get(session_id)
        if upload is None:
            raise DestinationClientError(f"Unknown upload session '{session_id}'.")
        return upload


__all__ = ["ComposedObject", "InMemoryBigObjectClient"]
