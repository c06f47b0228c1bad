"""In-memory checkpoint store."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime

from chunked_relay.domain.entities import TransferSession
from chunked_relay.domain.ports import CheckpointStore
from chunked_relay.domain.session_states import SessionStatus


class InMemoryCheckpointStore(CheckpointStore):
    """Simple checkpoint store for local development and tests.

    Sessions are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self) -> None:
        self._by_source_key: dict[str, TransferSession] = {}
        self._lock = asyncio.Lock()

    async def get(self, source_key: str) -> TransferSession | None:
        """Return the live checkpoint for a source key."""

        async with self._lock:
            session = self._live_unlocked(source_key)
            return None if session is None else replace(session)

    async def put(self, session: TransferSession) -> None:
        """Create or overwrite a checkpoint (last write wins)."""

        async with self._lock:
            stored = replace(session, updated_at=datetime.now(tz=UTC))
            self._by_source_key[session.source_key] = stored

    async def delete(self, source_key: str, *, session_id: str) -> bool:
        async with self._lock:
            session = self._by_source_key.get(source_key)
            if session is None or session.session_id != session_id:
                return False
            del self._by_source_key[source_key]
            return True

    async def compare_and_set_status(
        self,
        source_key: str,
        *,
        session_id: str,
        expected: frozenset[SessionStatus],
        new_status: SessionStatus,
        last_error: str | None = None,
    ) -> bool:
        """Move status only if session id and current status still match."""

        async with self._lock:
            session = self._live_unlocked(source_key)
            if session is None or session.session_id != session_id:
                return False
            if session.status not in expected:
                return False
            session.status = new_status
            if last_error is not None:
                session.last_error = last_error
            session.updated_at = datetime.now(tz=UTC)
            return True

    async def record_handoff(
        self,
        source_key: str,
        *,
        session_id: str,
        part_index: int,
        expected: frozenset[SessionStatus],
        count_redispatch: bool = False,
    ) -> bool:
        """Record the cursor handed to the next invocation."""

        async with self._lock:
            session = self._live_unlocked(source_key)
            if session is None or session.session_id != session_id:
                return False
            if session.status not in expected:
                return False
            session.status = SessionStatus.WINDOW_EXPIRED
            session.handoff_part_index = part_index
            if count_redispatch:
                session.redispatch_count += 1
            session.updated_at = datetime.now(tz=UTC)
            return True

    async def list_sessions(self) -> list[TransferSession]:
        """Return live checkpoints in insertion order."""

        async with self._lock:
            now = datetime.now(tz=UTC)
            return [
                replace(session)
                for session in self._by_source_key.values()
                if not session.is_expired(now)
            ]

    def _live_unlocked(self, source_key: str) -> TransferSession | None:
        session = self._by_source_key.get(source_key)
        if session is None:
            return None
        if session.is_expired():
            del self._by_source_key[source_key]
            return None
        return session


__all__ = ["InMemoryCheckpointStore"]
