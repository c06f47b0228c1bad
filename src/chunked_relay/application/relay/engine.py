"""Resumable chunked relay engine: one call is one execution window."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from chunked_relay.application.relay.chunk_assembler import ChunkAssembler
from chunked_relay.application.relay.continuation_trigger import ContinuationTrigger
from chunked_relay.application.relay.deadline import Clock, DeadlineScheduler, ExecutionWindow
from chunked_relay.application.relay.finalizer import Finalizer
from chunked_relay.application.relay.part_uploader import PartUploader
from chunked_relay.application.relay.progress import ProgressReporter, format_size
from chunked_relay.domain.entities import (
    ContinuationRequest,
    InvocationOutcome,
    InvocationStatus,
    Part,
    TransferSession,
    part_length,
    total_parts_for,
)
from chunked_relay.domain.errors import (
    CheckpointNotFoundError,
    RelayValidationError,
    SourceSizeUnknownError,
    SourceUnreachableError,
)
from chunked_relay.domain.ports import (
    BigObjectClient,
    CheckpointStore,
    Notifier,
    SourceReader,
    SourceStream,
)
from chunked_relay.domain.session_states import (
    RESUMABLE_STATUSES,
    TERMINAL_STATUSES,
    SessionStatus,
    can_transition,
)

_DEFAULT_PART_SIZE = 512 * 1024
_NON_TERMINAL_STATUSES = frozenset(SessionStatus) - TERMINAL_STATUSES

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RelayEngineOptions:
    """Explicit engine configuration, built once from settings."""

    part_size: int = _DEFAULT_PART_SIZE
    execution_budget_seconds: float = 80.0
    dispatch_margin_seconds: float = 5.0
    upload_concurrency: int = 1
    checkpoint_ttl_seconds: int = 86400
    progress_min_interval_seconds: float = 5.0
    progress_every_parts: int = 20


@dataclass(slots=True)
class _Invocation:
    """Mutable state of the invocation currently running."""

    request: ContinuationRequest
    window: ExecutionWindow
    progress: ProgressReporter
    next_part_index: int
    session: TransferSession | None = None
    parts_uploaded: int = 0


class RelayEngine:
    """Move as many parts as one execution window allows, then hand off.

    - A fresh request (index 0, no session id) always opens a new destination
      session and overwrites any existing checkpoint for the source key.
    - A resumed request reads the checkpoint for identity/size/name only; the
      cursor comes from the request.
    - Budget checks only gate starting new reads and batches.
    """

    def __init__(
        self,
        options: RelayEngineOptions,
        checkpoint_store: CheckpointStore,
        source_reader: SourceReader,
        client: BigObjectClient,
        continuation_trigger: ContinuationTrigger,
        notifier: Notifier,
        clock: Clock = time.monotonic,
    ) -> None:
        self._options = options
        self._checkpoint_store = checkpoint_store
        self._source_reader = source_reader
        self._client = client
        self._continuation_trigger = continuation_trigger
        self._notifier = notifier
        self._clock = clock
        self._scheduler = DeadlineScheduler(
            options.execution_budget_seconds,
            options.dispatch_margin_seconds,
            clock=clock,
        )
        self._uploader = PartUploader(client, concurrency=options.upload_concurrency)
        self._finalizer = Finalizer(checkpoint_store, client)

    async def run(self, request: ContinuationRequest) -> InvocationOutcome:
        """Run one invocation; session-terminal errors become a FAILED outcome."""

        if request.next_part_index < 0:
            raise RelayValidationError("nextPartIndex must be >= 0.")

        invocation = _Invocation(
            request=request,
            window=self._scheduler.open_window(),
            progress=ProgressReporter(
                self._notifier,
                request.notify_target,
                status_handle=request.status_handle,
                min_interval_seconds=self._options.progress_min_interval_seconds,
                every_parts=self._options.progress_every_parts,
                clock=self._clock,
            ),
            next_part_index=request.next_part_index,
        )
        try:
            if request.is_fresh_start:
                return await self._start_session(invocation)
            return await self._resume_session(invocation)
        except Exception as exc:  # noqa: BLE001
            return await self._fail(invocation, exc)

    async def _start_session(self, invocation: _Invocation) -> InvocationOutcome:
        request = invocation.request
        existing = await self._checkpoint_store.get(request.source_key)
        if existing is not None:
            logger.info(
                "Discarding checkpoint of session '%s' (%s) for '%s'; starting a new session.",
                existing.session_id,
                existing.status,
                request.source_key,
            )

        await invocation.progress.status("Job started. Fetching source metadata...")
        async with self._source_reader.open(request.source_key, 0) as stream:
            metadata = stream.metadata
            if metadata.total_size is None:
                raise SourceSizeUnknownError(f"Source '{request.source_key}' reported no size.")
            if metadata.total_size <= 0:
                raise SourceUnreachableError(f"Source '{request.source_key}' is empty.")

            total_parts = total_parts_for(metadata.total_size, self._options.part_size)
            session_id = await self._client.open_session(
                filename=metadata.filename,
                total_parts=total_parts,
            )
            session = TransferSession(
                session_id=session_id,
                source_key=request.source_key,
                total_size=metadata.total_size,
                part_size=self._options.part_size,
                filename=metadata.filename,
                notify_target=request.notify_target,
                ttl_seconds=self._options.checkpoint_ttl_seconds,
                content_type=metadata.content_type,
                status=SessionStatus.STREAMING,
                status_handle=invocation.progress.status_handle,
            )
            await self._checkpoint_store.put(session)
            invocation.session = session
            logger.info(
                "Created session '%s' for '%s': %s bytes in %s parts.",
                session_id,
                request.source_key,
                metadata.total_size,
                total_parts,
            )
            await invocation.progress.status(
                f"File: {metadata.filename}\n"
                f"Size: {format_size(metadata.total_size)}\n"
                f"Total parts: {total_parts}"
            )
            handoff_index = await self._stream_parts(invocation, stream)

        return await self._complete_or_hand_off(invocation, handoff_index)

    async def _resume_session(self, invocation: _Invocation) -> InvocationOutcome:
        request = invocation.request
        session = await self._checkpoint_store.get(request.source_key)
        if session is None:
            raise CheckpointNotFoundError(
                f"No checkpoint for '{request.source_key}'; it may have expired."
            )
        if request.session_id is not None and request.session_id != session.session_id:
            return self._skip(
                invocation,
                f"continuation for session '{request.session_id}' was superseded by "
                f"session '{session.session_id}'",
            )
        if session.status not in RESUMABLE_STATUSES:
            return self._skip(
                invocation,
                f"session '{session.session_id}' is {session.status}",
            )
        if request.next_part_index > session.total_parts:
            raise RelayValidationError(
                f"nextPartIndex {request.next_part_index} exceeds total parts "
                f"{session.total_parts}."
            )

        claimed = await self._checkpoint_store.compare_and_set_status(
            request.source_key,
            session_id=session.session_id,
            expected=RESUMABLE_STATUSES,
            new_status=SessionStatus.STREAMING,
        )
        if not claimed:
            return self._skip(invocation, f"session '{session.session_id}' changed state")
        session.status = SessionStatus.STREAMING
        invocation.session = session

        if request.next_part_index == session.total_parts:
            return await self._complete_or_hand_off(invocation, None)

        start_byte = session.byte_offset(request.next_part_index)
        async with self._source_reader.open(request.source_key, start_byte) as stream:
            self._ensure_same_object(session, stream)
            handoff_index = await self._stream_parts(invocation, stream)

        return await self._complete_or_hand_off(invocation, handoff_index)

    async def _stream_parts(self, invocation: _Invocation, stream: SourceStream) -> int | None:
        """Upload parts until the stream ends (None) or the window closes (cursor)."""

        session = self._session(invocation)
        batch_size = self._uploader.concurrency
        assembler = ChunkAssembler(session.part_size, start_index=invocation.next_part_index)
        pending: list[Part] = []

        async for chunk in stream.chunks:
            if invocation.window.expired():
                return invocation.next_part_index
            pending.extend(assembler.feed(chunk))
            while len(pending) >= batch_size:
                if invocation.window.expired():
                    return invocation.next_part_index
                batch, pending = pending[:batch_size], pending[batch_size:]
                await self._upload_batch(invocation, batch)

        final_part = assembler.finish()
        if final_part is not None:
            pending.append(final_part)
        if assembler.next_part_index < session.total_parts:
            raise SourceUnreachableError(
                f"Source stream ended early: {assembler.next_part_index} of "
                f"{session.total_parts} parts available."
            )

        while pending:
            if invocation.window.expired():
                return invocation.next_part_index
            batch, pending = pending[:batch_size], pending[batch_size:]
            await self._upload_batch(invocation, batch)
        return None

    async def _upload_batch(self, invocation: _Invocation, batch: list[Part]) -> None:
        session = self._session(invocation)
        for part in batch:
            if part.part_index >= session.total_parts:
                raise SourceUnreachableError(
                    f"Source returned more than the advertised {session.total_size} bytes."
                )
            expected = part_length(part.part_index, session.total_size, session.part_size)
            if part.length != expected:
                raise SourceUnreachableError(
                    f"Part {part.part_index} has {part.length} bytes, expected {expected}."
                )

        await self._uploader.upload_batch(session.session_id, batch, session.total_parts)
        invocation.next_part_index = batch[-1].part_index + 1
        invocation.parts_uploaded += len(batch)
        await invocation.progress.report(
            session.filename,
            invocation.next_part_index,
            session.total_parts,
        )

    async def _complete_or_hand_off(
        self,
        invocation: _Invocation,
        handoff_index: int | None,
    ) -> InvocationOutcome:
        if handoff_index is not None:
            return await self._hand_off(invocation, handoff_index)
        return await self._finalize(invocation)

    async def _hand_off(self, invocation: _Invocation, next_part_index: int) -> InvocationOutcome:
        session = self._session(invocation)
        recorded = await self._checkpoint_store.record_handoff(
            session.source_key,
            session_id=session.session_id,
            part_index=next_part_index,
            expected=frozenset({SessionStatus.STREAMING}),
        )
        if not recorded:
            return self._skip(
                invocation,
                f"session '{session.session_id}' changed state before handoff",
            )
        session.status = SessionStatus.WINDOW_EXPIRED
        session.handoff_part_index = next_part_index
        logger.info(
            "Execution window for session '%s' closed after %.1fs; handing off at part %s/%s.",
            session.session_id,
            invocation.window.elapsed(),
            next_part_index,
            session.total_parts,
        )

        accepted = await self._continuation_trigger.fire(
            ContinuationRequest(
                source_key=session.source_key,
                notify_target=session.notify_target,
                next_part_index=next_part_index,
                status_handle=invocation.progress.status_handle,
                session_id=session.session_id,
            )
        )
        return InvocationOutcome(
            status=InvocationStatus.WINDOW_EXPIRED,
            next_part_index=next_part_index,
            parts_uploaded=invocation.parts_uploaded,
            session_id=session.session_id,
            error=None if accepted else "Continuation dispatch failed; session stalled.",
        )

    async def _finalize(self, invocation: _Invocation) -> InvocationOutcome:
        session = self._session(invocation)
        await invocation.progress.status(f"Upload 100%. Finalizing {session.filename}...")
        if not await self._finalizer.finalize(session):
            return self._skip(invocation, f"session '{session.session_id}' is finalizing elsewhere")

        await invocation.progress.announce(
            f"Relayed {session.filename} ({format_size(session.total_size)})."
        )
        return InvocationOutcome(
            status=InvocationStatus.DONE,
            next_part_index=session.total_parts,
            parts_uploaded=invocation.parts_uploaded,
            session_id=session.session_id,
        )

    async def _fail(self, invocation: _Invocation, exc: Exception) -> InvocationOutcome:
        error = str(exc) or type(exc).__name__
        request = invocation.request
        session = invocation.session
        logger.warning(
            "Relay of '%s' failed at part %s: %s",
            request.source_key,
            invocation.next_part_index,
            error,
        )
        if session is not None and can_transition(session.status, SessionStatus.FAILED):
            try:
                await self._checkpoint_store.compare_and_set_status(
                    session.source_key,
                    session_id=session.session_id,
                    expected=_NON_TERMINAL_STATUSES,
                    new_status=SessionStatus.FAILED,
                    last_error=error,
                )
            except Exception:
                logger.exception(
                    "Could not mark session '%s' as FAILED.",
                    session.session_id,
                )
            session.status = SessionStatus.FAILED
            session.last_error = error

        await invocation.progress.announce(f"Error: {error}")
        return InvocationOutcome(
            status=InvocationStatus.FAILED,
            next_part_index=invocation.next_part_index,
            parts_uploaded=invocation.parts_uploaded,
            session_id=None if session is None else session.session_id,
            error=error,
        )

    def _skip(self, invocation: _Invocation, reason: str) -> InvocationOutcome:
        logger.warning(
            "Ignoring invocation for '%s' at part %s: %s.",
            invocation.request.source_key,
            invocation.request.next_part_index,
            reason,
        )
        session = invocation.session
        return InvocationOutcome(
            status=InvocationStatus.SKIPPED,
            next_part_index=invocation.next_part_index,
            parts_uploaded=invocation.parts_uploaded,
            session_id=None if session is None else session.session_id,
            error=reason,
        )

    def _ensure_same_object(self, session: TransferSession, stream: SourceStream) -> None:
        size = stream.metadata.total_size
        if size is not None and size != session.total_size:
            raise SourceUnreachableError(
                f"Source size changed from {session.total_size} to {size} bytes "
                "between invocations."
            )

    def _session(self, invocation: _Invocation) -> TransferSession:
        session = invocation.session
        assert session is not None
        return session


__all__ = ["RelayEngine", "RelayEngineOptions"]
