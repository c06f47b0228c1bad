"""Bounded-retry handoff of the resumption cursor to the next invocation."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from chunked_relay.domain.entities import ContinuationRequest
from chunked_relay.domain.ports import ContinuationDispatcher

_DEFAULT_MAX_ATTEMPTS = 3
_DEFAULT_BASE_DELAY_SECONDS = 0.5
_DEFAULT_MAX_DELAY_SECONDS = 5.0

Sleep = Callable[[float], Awaitable[None]]

logger = logging.getLogger(__name__)


class ContinuationTrigger:
    """Dispatch a continuation, retrying transient failures with backoff.

    A dispatcher returning False means the successor explicitly rejected the
    cursor; that is final. Exceptions are treated as transient. Once all
    attempts are spent the session stalls until the stale-session reaper
    notices it.
    """

    def __init__(
        self,
        dispatcher: ContinuationDispatcher,
        *,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        retry_base_delay_seconds: float = _DEFAULT_BASE_DELAY_SECONDS,
        retry_max_delay_seconds: float = _DEFAULT_MAX_DELAY_SECONDS,
        retry_jitter_ratio: float = 0.2,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._dispatcher = dispatcher
        self._max_attempts = max(max_attempts, 1)
        self._retry_base_delay_seconds = max(retry_base_delay_seconds, 0.0)
        self._retry_max_delay_seconds = max(
            retry_max_delay_seconds,
            self._retry_base_delay_seconds,
        )
        self._retry_jitter_ratio = max(min(retry_jitter_ratio, 1.0), 0.0)
        self._sleep = sleep

    async def fire(self, request: ContinuationRequest) -> bool:
        """Return True once a successor accepted the cursor."""

        for attempt in range(1, self._max_attempts + 1):
            try:
                accepted = await self._dispatcher.dispatch(request)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Continuation dispatch for '%s' at part %s failed (attempt %s/%s): %s",
                    request.source_key,
                    request.next_part_index,
                    attempt,
                    self._max_attempts,
                    exc,
                )
            else:
                if accepted:
                    return True
                logger.error(
                    "Continuation for '%s' at part %s was rejected by the successor.",
                    request.source_key,
                    request.next_part_index,
                )
                return False

            if attempt < self._max_attempts:
                await self._sleep(self._retry_delay(attempt))

        logger.error(
            "Continuation dispatch for '%s' exhausted %s attempts; session stalls at part %s.",
            request.source_key,
            self._max_attempts,
            request.next_part_index,
        )
        return False

    def _retry_delay(self, attempt_number: int) -> float:
        base_delay = self._retry_base_delay_seconds * (2 ** max(attempt_number - 1, 0))
        capped_delay = min(base_delay, self._retry_max_delay_seconds)
        if self._retry_jitter_ratio > 0 and capped_delay > 0:
            jitter_window = capped_delay * self._retry_jitter_ratio
            capped_delay = max(capped_delay + random.uniform(-jitter_window, jitter_window), 0.0)
        return capped_delay


__all__ = ["ContinuationTrigger"]
