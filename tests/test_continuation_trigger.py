from __future__ import annotations

import asyncio

from chunked_relay.application.relay import ContinuationTrigger
from chunked_relay.domain import ContinuationDispatchError, ContinuationRequest


class ScriptedDispatcher:
    def __init__(self, outcomes: list[bool | Exception]) -> None:
        self._outcomes = list(outcomes)
        self.requests: list[ContinuationRequest] = []

    async def dispatch(self, request: ContinuationRequest) -> bool:
        self.requests.append(request)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _request() -> ContinuationRequest:
    return ContinuationRequest(
        source_key="https://cdn.example.com/movie.mp4",
        notify_target="chat-1",
        next_part_index=7,
        session_id="session-1",
    )


def test_transient_errors_are_retried_with_exponential_backoff() -> None:
    dispatcher = ScriptedDispatcher(
        [ContinuationDispatchError("503"), ContinuationDispatchError("503"), True]
    )
    sleep = RecordingSleep()
    trigger = ContinuationTrigger(
        dispatcher,
        max_attempts=3,
        retry_base_delay_seconds=0.5,
        retry_jitter_ratio=0.0,
        sleep=sleep,
    )

    assert asyncio.run(trigger.fire(_request())) is True
    assert len(dispatcher.requests) == 3
    assert sleep.delays == [0.5, 1.0]


def test_rejection_is_final() -> None:
    dispatcher = ScriptedDispatcher([False, True])
    sleep = RecordingSleep()
    trigger = ContinuationTrigger(dispatcher, sleep=sleep)

    assert asyncio.run(trigger.fire(_request())) is False
    assert len(dispatcher.requests) == 1
    assert sleep.delays == []


def test_exhausted_attempts_report_failure() -> None:
    dispatcher = ScriptedDispatcher([RuntimeError("down")] * 2)
    sleep = RecordingSleep()
    trigger = ContinuationTrigger(
        dispatcher,
        max_attempts=2,
        retry_jitter_ratio=0.0,
        sleep=sleep,
    )

    assert asyncio.run(trigger.fire(_request())) is False
    assert len(dispatcher.requests) == 2
    assert len(sleep.delays) == 1
