"""Relay use-case service."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from chunked_relay.application.relay.engine import RelayEngine
from chunked_relay.domain.entities import ContinuationRequest, InvocationOutcome
from chunked_relay.domain.errors import (
    CheckpointNotFoundError,
    ContinuationDispatchError,
    RelayConfigError,
    RelayValidationError,
    SessionConflictError,
)
from chunked_relay.domain.ports import (
    CheckpointStore,
    ContinuationDispatcher,
    ManagedContinuationDispatcher,
)
from chunked_relay.domain.relay_models import (
    CheckpointInfoResponse,
    CheckpointListResponse,
    ContinuationMessage,
    InvocationOutcomeResponse,
    ReaperRunResponse,
    RelayAcceptedResponse,
    RelayStartMessage,
)
from chunked_relay.domain.session_states import RESUMABLE_STATUSES

logger = logging.getLogger(__name__)


@runtime_checkable
class _RunnerAwareDispatcher(Protocol):
    """Optional dispatcher extension that executes invocations itself."""

    def set_runner(
        self,
        runner: Callable[[ContinuationRequest], Awaitable[object]],
    ) -> None:
        """Register the coroutine that runs one invocation."""


class _StaleSessionReaper(Protocol):
    """Stale-session reaper lifecycle and one-shot hook."""

    async def start(self) -> None:
        """Start background reaping."""

    async def stop(self) -> None:
        """Stop background reaping."""

    async def run_once(self) -> object:
        """Run one pass; the result exposes `redispatched` and `failed`."""


class RelayService:
    """Accept relay jobs and continuations and schedule engine invocations."""

    def __init__(
        self,
        engine: RelayEngine,
        checkpoint_store: CheckpointStore,
        scheduler: ContinuationDispatcher,
        reaper: _StaleSessionReaper | None = None,
    ) -> None:
        self._engine = engine
        self._checkpoint_store = checkpoint_store
        self._scheduler = scheduler
        self._reaper = reaper
        if isinstance(scheduler, _RunnerAwareDispatcher):
            scheduler.set_runner(self.run_invocation)

    async def startup(self) -> None:
        """Start background workers owned by this service."""

        if isinstance(self._scheduler, ManagedContinuationDispatcher):
            await self._scheduler.start()
        if self._reaper is not None:
            await self._reaper.start()

    async def shutdown(self) -> None:
        """Stop background workers owned by this service."""

        if self._reaper is not None:
            await self._reaper.stop()
        if isinstance(self._scheduler, ManagedContinuationDispatcher):
            await self._scheduler.stop()

    async def start(self, message: RelayStartMessage) -> RelayAcceptedResponse:
        """Handle `POST /relays`: schedule a fresh job for a source URL."""

        request = ContinuationRequest(
            source_key=message.source_url,
            notify_target=message.notify_target,
        )
        await self._schedule(request)
        logger.info("Accepted relay of '%s' for '%s'.", request.source_key, request.notify_target)
        return RelayAcceptedResponse(source_key=request.source_key, next_part_index=0)

    async def continue_relay(self, message: ContinuationMessage) -> RelayAcceptedResponse:
        """Handle `POST /relays/continue`: schedule the next invocation."""

        request = message.to_request()
        if not request.is_fresh_start:
            await self._validate_continuation(request)
        await self._schedule(request)
        return RelayAcceptedResponse(
            source_key=request.source_key,
            next_part_index=request.next_part_index,
        )

    async def invoke(self, message: ContinuationMessage) -> InvocationOutcomeResponse:
        """Handle `POST /relays/invoke`: run one invocation inside the request."""

        request = message.to_request()
        if not request.is_fresh_start:
            await self._validate_continuation(request)
        outcome = await self.run_invocation(request)
        return InvocationOutcomeResponse.from_outcome(outcome)

    async def run_invocation(self, request: ContinuationRequest) -> InvocationOutcome:
        """Run one engine invocation and log how it ended."""

        outcome = await self._engine.run(request)
        logger.info(
            "Invocation for '%s' ended %s at part %s (%s parts uploaded).",
            request.source_key,
            outcome.status,
            outcome.next_part_index,
            outcome.parts_uploaded,
        )
        return outcome

    async def list_checkpoints(self) -> CheckpointListResponse:
        """List live checkpoints for management UIs."""

        sessions = await self._checkpoint_store.list_sessions()
        return CheckpointListResponse(
            checkpoints=[CheckpointInfoResponse.from_session(session) for session in sessions]
        )

    async def get_checkpoint(self, source_key: str) -> CheckpointInfoResponse:
        """Fetch one checkpoint for management UIs."""

        session = await self._checkpoint_store.get(source_key)
        if session is None:
            raise CheckpointNotFoundError(f"No checkpoint found for '{source_key}'.")
        return CheckpointInfoResponse.from_session(session)

    async def run_reaper_once(self) -> ReaperRunResponse:
        """Run one stale-session reaper pass on demand."""

        if self._reaper is None:
            raise RelayConfigError("Stale-session reaper is not configured.")
        summary = await self._reaper.run_once()
        return ReaperRunResponse(
            redispatched=getattr(summary, "redispatched", 0),
            failed=getattr(summary, "failed", 0),
        )

    async def _validate_continuation(self, request: ContinuationRequest) -> None:
        session = await self._checkpoint_store.get(request.source_key)
        if session is None:
            raise CheckpointNotFoundError(
                f"No checkpoint found for '{request.source_key}'; it may have expired."
            )
        if request.session_id is not None and request.session_id != session.session_id:
            raise SessionConflictError(
                f"Session '{request.session_id}' was superseded by '{session.session_id}'."
            )
        if session.status not in RESUMABLE_STATUSES:
            raise SessionConflictError(
                f"Session '{session.session_id}' is {session.status} and cannot be continued."
            )
        if request.next_part_index > session.total_parts:
            raise RelayValidationError(
                f"nextPartIndex {request.next_part_index} exceeds total parts "
                f"{session.total_parts}."
            )

    async def _schedule(self, request: ContinuationRequest) -> None:
        accepted = await self._scheduler.dispatch(request)
        if not accepted:
            raise ContinuationDispatchError(
                f"Invocation for '{request.source_key}' at part "
                f"{request.next_part_index} was not accepted."
            )


__all__ = ["RelayService"]
