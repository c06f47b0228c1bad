"""Background recovery of sessions whose continuation was lost."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from chunked_relay.application.relay.continuation_trigger import ContinuationTrigger
from chunked_relay.application.relay.progress import ProgressReporter
from chunked_relay.domain.entities import ContinuationRequest, TransferSession
from chunked_relay.domain.ports import CheckpointStore, Notifier
from chunked_relay.domain.session_states import RESUMABLE_STATUSES, SessionStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ReaperRunSummary:
    """Counts produced by one reaper pass."""

    redispatched: int = 0
    failed: int = 0


class StaleSessionReaper:
    """Re-dispatch stalled sessions, then give up on them after a bounded count.

    A session is stale when it is STREAMING or WINDOW_EXPIRED and its
    checkpoint has not been touched for `stale_after_seconds`.
    """

    def __init__(
        self,
        checkpoint_store: CheckpointStore,
        continuation_trigger: ContinuationTrigger,
        notifier: Notifier,
        *,
        stale_after_seconds: float = 300.0,
        max_redispatches: int = 3,
        poll_interval_seconds: float = 60.0,
    ) -> None:
        self._checkpoint_store = checkpoint_store
        self._continuation_trigger = continuation_trigger
        self._notifier = notifier
        self._stale_after_seconds = max(stale_after_seconds, 0.0)
        self._max_redispatches = max(max_redispatches, 0)
        self._poll_interval_seconds = max(poll_interval_seconds, 0.01)

        self._task: asyncio.Task[None] | None = None
        self._wake_event = asyncio.Event()
        self._stopping = asyncio.Event()
        self._lifecycle_lock = asyncio.Lock()

    async def start(self) -> None:
        """Start reaper background loop if not already running."""

        async with self._lifecycle_lock:
            task = self._task
            if task is not None and not task.done():
                return

            self._stopping.clear()
            self._task = asyncio.create_task(
                self._run_loop(),
                name="stale-session-reaper",
            )

    async def stop(self) -> None:
        """Stop reaper background loop."""

        async with self._lifecycle_lock:
            task = self._task
            if task is None:
                return
            self._task = None

            self._stopping.set()
            self._wake_event.set()
            task.cancel()

        with suppress(asyncio.CancelledError):
            await task

    async def run_once(self, now: datetime | None = None) -> ReaperRunSummary:
        """Scan checkpoints once and act on every stale session."""

        current = now or datetime.now(tz=UTC)
        threshold = current - timedelta(seconds=self._stale_after_seconds)
        redispatched = 0
        failed = 0
        for session in await self._checkpoint_store.list_sessions():
            if session.status not in RESUMABLE_STATUSES or session.updated_at > threshold:
                continue
            try:
                if session.redispatch_count >= self._max_redispatches:
                    failed += int(await self._give_up(session))
                else:
                    redispatched += int(await self._redispatch(session))
            except Exception:
                logger.exception("Reaping session '%s' failed.", session.session_id)
        return ReaperRunSummary(redispatched=redispatched, failed=failed)

    async def _run_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                summary = await self.run_once()
                if summary.redispatched or summary.failed:
                    logger.info(
                        "Reaper pass re-dispatched %s and failed %s stale sessions.",
                        summary.redispatched,
                        summary.failed,
                    )
            except Exception:
                logger.exception("Stale-session reaper loop failed.")

            self._wake_event.clear()
            try:
                await asyncio.wait_for(
                    self._wake_event.wait(),
                    timeout=self._poll_interval_seconds,
                )
            except TimeoutError:
                pass

    async def _redispatch(self, session: TransferSession) -> bool:
        recorded = await self._checkpoint_store.record_handoff(
            session.source_key,
            session_id=session.session_id,
            part_index=session.handoff_part_index,
            expected=RESUMABLE_STATUSES,
            count_redispatch=True,
        )
        if not recorded:
            return False

        logger.warning(
            "Session '%s' for '%s' is stale since %s; re-dispatching from part %s (attempt %s/%s).",
            session.session_id,
            session.source_key,
            session.updated_at.isoformat(),
            session.handoff_part_index,
            session.redispatch_count + 1,
            self._max_redispatches,
        )
        return await self._continuation_trigger.fire(
            ContinuationRequest(
                source_key=session.source_key,
                notify_target=session.notify_target,
                next_part_index=session.handoff_part_index,
                status_handle=session.status_handle,
                session_id=session.session_id,
            )
        )

    async def _give_up(self, session: TransferSession) -> bool:
        error = (
            f"Relay of {session.filename} stalled at part "
            f"{session.handoff_part_index}/{session.total_parts} after "
            f"{session.redispatch_count} re-dispatches."
        )
        marked = await self._checkpoint_store.compare_and_set_status(
            session.source_key,
            session_id=session.session_id,
            expected=RESUMABLE_STATUSES,
            new_status=SessionStatus.FAILED,
            last_error=error,
        )
        if not marked:
            return False

        logger.warning("Session '%s' marked FAILED: %s", session.session_id, error)
        await ProgressReporter(self._notifier, session.notify_target).announce(f"Error: {error}")
        return True


__all__ = ["ReaperRunSummary", "StaleSessionReaper"]
