from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

from chunked_relay.application.relay import ContinuationTrigger
from chunked_relay.domain import ContinuationRequest, SessionStatus, TransferSession
from chunked_relay.infrastructure.checkpoints import InMemoryCheckpointStore
from chunked_relay.infrastructure.continuations import StaleSessionReaper

_SOURCE_KEY = "https://cdn.example.com/movie.mp4"


class RecordingDispatcher:
    def __init__(self) -> None:
        self.requests: list[ContinuationRequest] = []

    async def dispatch(self, request: ContinuationRequest) -> bool:
        self.requests.append(request)
        return True


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send_text(self, target: str, text: str) -> str | None:
        self.sent.append((target, text))
        return "1"

    async def edit_text(self, target: str, handle: str, text: str) -> None:
        return None


async def _no_sleep(seconds: float) -> None:
    return None


def _session(status: SessionStatus, **overrides: object) -> TransferSession:
    values: dict[str, object] = {
        "session_id": "session-1",
        "source_key": _SOURCE_KEY,
        "total_size": 20 * 524_288,
        "part_size": 524_288,
        "filename": "movie.mp4",
        "notify_target": "chat-1",
        "ttl_seconds": 86_400,
        "status": status,
        "status_handle": "42",
        "handoff_part_index": 7,
    }
    values.update(overrides)
    return TransferSession(**values)  # type: ignore[arg-type]


def _reaper(
    store: InMemoryCheckpointStore,
    dispatcher: RecordingDispatcher,
    notifier: RecordingNotifier,
    *,
    max_redispatches: int = 2,
) -> StaleSessionReaper:
    return StaleSessionReaper(
        store,
        ContinuationTrigger(dispatcher, sleep=_no_sleep),
        notifier,
        stale_after_seconds=300.0,
        max_redispatches=max_redispatches,
    )


def _later(minutes: int = 10) -> datetime:
    return datetime.now(tz=UTC) + timedelta(minutes=minutes)


def test_fresh_sessions_are_left_alone() -> None:
    store = InMemoryCheckpointStore()
    dispatcher = RecordingDispatcher()
    reaper = _reaper(store, dispatcher, RecordingNotifier())

    async def scenario():
        await store.put(_session(SessionStatus.WINDOW_EXPIRED))
        return await reaper.run_once()

    summary = asyncio.run(scenario())

    assert (summary.redispatched, summary.failed) == (0, 0)
    assert dispatcher.requests == []


def test_stale_session_is_redispatched_from_its_handoff_cursor() -> None:
    store = InMemoryCheckpointStore()
    dispatcher = RecordingDispatcher()
    reaper = _reaper(store, dispatcher, RecordingNotifier())

    async def scenario():
        await store.put(_session(SessionStatus.STREAMING))
        summary = await reaper.run_once(now=_later())
        return summary, await store.get(_SOURCE_KEY)

    summary, stored = asyncio.run(scenario())

    assert summary.redispatched == 1
    assert dispatcher.requests == [
        ContinuationRequest(
            source_key=_SOURCE_KEY,
            notify_target="chat-1",
            next_part_index=7,
            status_handle="42",
            session_id="session-1",
        )
    ]
    assert stored is not None
    assert stored.status is SessionStatus.WINDOW_EXPIRED
    assert stored.redispatch_count == 1


def test_session_is_failed_after_max_redispatches() -> None:
    store = InMemoryCheckpointStore()
    dispatcher = RecordingDispatcher()
    notifier = RecordingNotifier()
    reaper = _reaper(store, dispatcher, notifier, max_redispatches=2)

    async def scenario():
        await store.put(_session(SessionStatus.WINDOW_EXPIRED, redispatch_count=2))
        summary = await reaper.run_once(now=_later())
        return summary, await store.get(_SOURCE_KEY)

    summary, stored = asyncio.run(scenario())

    assert (summary.redispatched, summary.failed) == (0, 1)
    assert dispatcher.requests == []
    assert stored is not None
    assert stored.status is SessionStatus.FAILED
    expected_error = "Relay of movie.mp4 stalled at part 7/20 after 2 re-dispatches."
    assert stored.last_error == expected_error
    assert notifier.sent == [("chat-1", f"Error: {expected_error}")]


def test_terminal_sessions_are_ignored() -> None:
    store = InMemoryCheckpointStore()
    dispatcher = RecordingDispatcher()
    notifier = RecordingNotifier()
    reaper = _reaper(store, dispatcher, notifier)

    async def scenario():
        await store.put(_session(SessionStatus.FAILED))
        return await reaper.run_once(now=_later())

    summary = asyncio.run(scenario())

    assert (summary.redispatched, summary.failed) == (0, 0)
    assert dispatcher.requests == []
    assert notifier.sent == []


def test_background_loop_starts_and_stops() -> None:
    store = InMemoryCheckpointStore()
    reaper = StaleSessionReaper(
        store,
        ContinuationTrigger(RecordingDispatcher(), sleep=_no_sleep),
        RecordingNotifier(),
        poll_interval_seconds=0.01,
    )

    async def scenario() -> None:
        await reaper.start()
        await reaper.start()
        await asyncio.sleep(0.03)
        await reaper.stop()
        await reaper.stop()

    asyncio.run(scenario())
