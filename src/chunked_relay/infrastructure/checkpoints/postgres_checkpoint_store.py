"""PostgreSQL checkpoint store."""

from __future__ import annotations

import asyncio

import asyncpg  # type: ignore[import-untyped]

from chunked_relay.domain.entities import TransferSession
from chunked_relay.domain.ports import CheckpointStore
from chunked_relay.domain.session_states import SessionStatus

_SELECT_COLUMNS = """
    source_key,
    session_id,
    total_size,
    part_size,
    filename,
    notify_target,
    ttl_seconds,
    content_type,
    status,
    status_handle,
    handoff_part_index,
    redispatch_count,
    last_error,
    created_at,
    updated_at
"""


class PostgresCheckpointStore(CheckpointStore):
    """Checkpoint store backed by PostgreSQL.

    Expired rows are filtered on read and purged opportunistically on write.
    """

    def __init__(
        self,
        dsn: str,
        min_pool_size: int = 1,
        max_pool_size: int = 10,
    ) -> None:
        self._dsn = dsn
        self._min_pool_size = min_pool_size
        self._max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def get(self, source_key: str) -> TransferSession | None:
        """Return the live checkpoint for a source key."""

        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            SELECT {_SELECT_COLUMNS}
            FROM relay_checkpoints
            WHERE source_key = $1
              AND expires_at > NOW()
            """,
            source_key,
        )
        if row is None:
            return None
        return self._to_entity(row)

    async def put(self, session: TransferSession) -> None:
        """Create or overwrite a checkpoint (last write wins)."""

        pool = await self._get_pool()
        async with pool.acquire() as connection:
            async with connection.transaction():
                await connection.execute(
                    "DELETE FROM relay_checkpoints WHERE expires_at <= NOW()"
                )
                await connection.execute(
                    """
                    INSERT INTO relay_checkpoints (
                        source_key,
                        session_id,
                        total_size,
                        part_size,
                        filename,
                        notify_target,
                        ttl_seconds,
                        content_type,
                        status,
                        status_handle,
                        handoff_part_index,
                        redispatch_count,
                        last_error,
                        created_at,
                        updated_at,
                        expires_at
                    ) VALUES (
                        $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, NOW(), $15
                    )
                    ON CONFLICT (source_key) DO UPDATE SET
                        session_id = EXCLUDED.session_id,
                        total_size = EXCLUDED.total_size,
                        part_size = EXCLUDED.part_size,
                        filename = EXCLUDED.filename,
                        notify_target = EXCLUDED.notify_target,
                        ttl_seconds = EXCLUDED.ttl_seconds,
                        content_type = EXCLUDED.content_type,
                        status = EXCLUDED.status,
                        status_handle = EXCLUDED.status_handle,
                        handoff_part_index = EXCLUDED.handoff_part_index,
                        redispatch_count = EXCLUDED.redispatch_count,
                        last_error = EXCLUDED.last_error,
                        created_at = EXCLUDED.created_at,
                        updated_at = NOW(),
                        expires_at = EXCLUDED.expires_at
                    """,
                    session.source_key,
                    session.session_id,
                    session.total_size,
                    session.part_size,
                    session.filename,
                    session.notify_target,
                    session.ttl_seconds,
                    session.content_type,
                    session.status.value,
                    session.status_handle,
                    session.handoff_part_index,
                    session.redispatch_count,
                    session.last_error,
                    session.created_at,
                    session.expires_at,
                )

    async def delete(self, source_key: str, *, session_id: str) -> bool:
        pool = await self._get_pool()
        result = await pool.execute(
            "DELETE FROM relay_checkpoints WHERE source_key = $1 AND session_id = $2",
            source_key,
            session_id,
        )
        return result.endswith(" 1")

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

        pool = await self._get_pool()
        result = await pool.execute(
            """
            UPDATE relay_checkpoints
            SET
                status = $4,
                last_error = COALESCE($5, last_error),
                updated_at = NOW()
            WHERE source_key = $1
              AND session_id = $2
              AND status = ANY($3::text[])
              AND expires_at > NOW()
            """,
            source_key,
            session_id,
            sorted(status.value for status in expected),
            new_status.value,
            last_error,
        )
        return result.endswith(" 1")

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

        pool = await self._get_pool()
        result = await pool.execute(
            """
            UPDATE relay_checkpoints
            SET
                status = $4,
                handoff_part_index = $5,
                redispatch_count = redispatch_count + CASE WHEN $6 THEN 1 ELSE 0 END,
                updated_at = NOW()
            WHERE source_key = $1
              AND session_id = $2
              AND status = ANY($3::text[])
              AND expires_at > NOW()
            """,
            source_key,
            session_id,
            sorted(status.value for status in expected),
            SessionStatus.WINDOW_EXPIRED.value,
            part_index,
            count_redispatch,
        )
        return result.endswith(" 1")

    async def list_sessions(self) -> list[TransferSession]:
        """Return live checkpoints, oldest first."""

        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            SELECT {_SELECT_COLUMNS}
            FROM relay_checkpoints
            WHERE expires_at > NOW()
            ORDER BY created_at ASC, source_key ASC
            """,
        )
        return [self._to_entity(row) for row in rows]

    async def close(self) -> None:
        """Close the pool if it was initialized."""

        pool = self._pool
        self._pool = None
        if pool is not None:
            await pool.close()

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            if self._pool is None:
                pool = await asyncpg.create_pool(
                    dsn=self._dsn,
                    min_size=self._min_pool_size,
                    max_size=self._max_pool_size,
                )
                await self._ensure_schema(pool)
                self._pool = pool
        assert self._pool is not None
        return self._pool

    async def _ensure_schema(self, pool: asyncpg.Pool) -> None:
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS relay_checkpoints (
                source_key TEXT PRIMARY KEY,
                session_id TEXT NOT NULL,
                total_size BIGINT NOT NULL,
                part_size INTEGER NOT NULL,
                filename TEXT NOT NULL,
                notify_target TEXT NOT NULL,
                ttl_seconds INTEGER NOT NULL,
                content_type TEXT,
                status TEXT NOT NULL,
                status_handle TEXT,
                handoff_part_index INTEGER NOT NULL DEFAULT 0,
                redispatch_count INTEGER NOT NULL DEFAULT 0,
                last_error TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                expires_at TIMESTAMPTZ NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_relay_checkpoints_resumable
                ON relay_checkpoints (status, updated_at)
                WHERE status IN ('STREAMING', 'WINDOW_EXPIRED');
            """
        )

    def _to_entity(self, row: asyncpg.Record) -> TransferSession:
        return TransferSession(
            session_id=row["session_id"],
            source_key=row["source_key"],
            total_size=row["total_size"],
            part_size=row["part_size"],
            filename=row["filename"],
            notify_target=row["notify_target"],
            ttl_seconds=row["ttl_seconds"],
            content_type=row["content_type"],
            status=SessionStatus(row["status"]),
            status_handle=row["status_handle"],
            handoff_part_index=row["handoff_part_index"],
            redispatch_count=row["redispatch_count"],
            last_error=row["last_error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


__all__ = ["PostgresCheckpointStore"]
