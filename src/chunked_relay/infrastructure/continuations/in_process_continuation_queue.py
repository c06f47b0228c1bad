"""In-process, deduplicating continuation queue."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress

from chunked_relay.domain.entities import ContinuationRequest
from chunked_relay.domain.errors import ContinuationDispatchError
from chunked_relay.domain.ports import ManagedContinuationDispatcher

ContinuationRunner = Callable[[ContinuationRequest], Awaitable[object]]
_DedupKey = tuple[str, str | None, int]

logger = logging.getLogger(__name__)


class InProcessContinuationQueue(ManagedContinuationDispatcher):
    """Run continuations on local asyncio workers with at-least-once semantics.

    A request is keyed by `(sourceKey, sessionId, nextPartIndex)`; dispatching
    a key that is already queued or running is accepted without enqueueing
    it again.
    """

    def __init__(self, *, worker_count: int = 4) -> None:
        self._worker_count = max(worker_count, 1)
        self._queue: asyncio.Queue[ContinuationRequest] = asyncio.Queue()
        self._pending_keys: set[_DedupKey] = set()
        self._runner: ContinuationRunner | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._lifecycle_lock = asyncio.Lock()

    def set_runner(self, runner: ContinuationRunner) -> None:
        """Register the coroutine that executes one invocation."""

        self._runner = runner

    @property
    def pending_count(self) -> int:
        """Return queued plus running continuations."""

        return len(self._pending_keys)

    async def dispatch(self, request: ContinuationRequest) -> bool:
        """Enqueue a continuation; duplicates of a pending key are accepted as-is."""

        if self._runner is None:
            raise ContinuationDispatchError("No continuation runner is configured.")

        key = self._key(request)
        if key in self._pending_keys:
            logger.info(
                "Continuation for '%s' at part %s is already pending; ignoring duplicate.",
                request.source_key,
                request.next_part_index,
            )
            return True

        self._pending_keys.add(key)
        self._queue.put_nowait(request)
        return True

    async def start(self) -> None:
        """Start worker tasks if not already running."""

        async with self._lifecycle_lock:
            if any(not worker.done() for worker in self._workers):
                return
            self._workers = [
                asyncio.create_task(
                    self._run_worker(),
                    name=f"continuation-queue-worker-{index}",
                )
                for index in range(self._worker_count)
            ]

    async def stop(self) -> None:
        """Cancel worker tasks; queued continuations are dropped."""

        async with self._lifecycle_lock:
            workers = self._workers
            self._workers = []
            for worker in workers:
                worker.cancel()

        for worker in workers:
            with suppress(asyncio.CancelledError):
                await worker

    async def join(self) -> None:
        """Wait until the queue, including continuations it spawns, is drained."""

        await self._queue.join()

    async def _run_worker(self) -> None:
        while True:
            request = await self._queue.get()
            try:
                await self._run_one(request)
            finally:
                self._pending_keys.discard(self._key(request))
                self._queue.task_done()

    async def _run_one(self, request: ContinuationRequest) -> None:
        runner = self._runner
        if runner is None:
            logger.error(
                "Dropping continuation for '%s': no runner configured.",
                request.source_key,
            )
            return
        try:
            await runner(request)
        except Exception:
            logger.exception(
                "Continuation for '%s' at part %s failed.",
                request.source_key,
                request.next_part_index,
            )

    def _key(self, request: ContinuationRequest) -> _DedupKey:
        return (request.source_key, request.session_id, request.next_part_index)


__all__ = ["ContinuationRunner", "InProcessContinuationQueue"]
