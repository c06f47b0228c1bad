from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest

from chunked_relay.application.relay import (
    ContinuationTrigger,
    RelayEngine,
    RelayEngineOptions,
)
from chunked_relay.application.services import RelayService
from chunked_relay.domain import (
    CheckpointNotFoundError,
    ContinuationDispatchError,
    ContinuationMessage,
    ContinuationRequest,
    InvocationOutcome,
    InvocationStatus,
    RelayConfigError,
    RelayStartMessage,
    RelayValidationError,
    SessionConflictError,
    SessionStatus,
    SourceMetadata,
    SourceStream,
    TransferSession,
)
from chunked_relay.infrastructure.checkpoints import InMemoryCheckpointStore
from chunked_relay.infrastructure.continuations import InProcessContinuationQueue
from chunked_relay.infrastructure.destination import InMemoryBigObjectClient
from chunked_relay.infrastructure.notifications import LoggingNotifier

_SOURCE_KEY = "https://cdn.example.com/files/movie.mp4"
_PART_SIZE = 1024


class FakeEngine:
    def __init__(self) -> None:
        self.requests: list[ContinuationRequest] = []

    async def run(self, request: ContinuationRequest) -> InvocationOutcome:
        self.requests.append(request)
        return InvocationOutcome(
            status=InvocationStatus.DONE,
            next_part_index=4,
            parts_uploaded=4,
            session_id="session-1",
        )


class RecordingScheduler:
    def __init__(self, accept: bool = True) -> None:
        self._accept = accept
        self.requests: list[ContinuationRequest] = []

    async def dispatch(self, request: ContinuationRequest) -> bool:
        self.requests.append(request)
        return self._accept


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class SlowInMemoryBigObjectClient(InMemoryBigObjectClient):
    def __init__(self, clock: FakeClock, seconds_per_part: float) -> None:
        super().__init__()
        self._clock = clock
        self._seconds_per_part = seconds_per_part
        self.session_ids: list[str] = []

    async def open_session(self, *, filename: str, total_parts: int) -> str:
        session_id = await super().open_session(filename=filename, total_parts=total_parts)
        self.session_ids.append(session_id)
        return session_id

    async def save_part(
        self,
        session_id: str,
        part_index: int,
        total_parts: int,
        data: bytes,
    ) -> None:
        self._clock.now += self._seconds_per_part
        await super().save_part(session_id, part_index, total_parts, data)


class BytesSourceReader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self.opened_at: list[int] = []

    @asynccontextmanager
    async def open(self, url: str, start_byte: int = 0) -> AsyncIterator[SourceStream]:
        self.opened_at.append(start_byte)
        yield SourceStream(
            metadata=SourceMetadata(
                total_size=len(self._data),
                filename="movie.mp4",
                supports_range=True,
            ),
            start_byte=start_byte,
            chunks=self._chunks(start_byte),
        )

    async def _chunks(self, start_byte: int) -> AsyncIterator[bytes]:
        for offset in range(start_byte, len(self._data), 300):
            yield self._data[offset : offset + 300]


def _session(status: SessionStatus = SessionStatus.WINDOW_EXPIRED) -> TransferSession:
    return TransferSession(
        session_id="session-1",
        source_key=_SOURCE_KEY,
        total_size=4 * _PART_SIZE,
        part_size=_PART_SIZE,
        filename="movie.mp4",
        notify_target="chat-1",
        ttl_seconds=86_400,
        status=status,
        handoff_part_index=2,
    )


def _continuation(next_part_index: int = 2, session_id: str | None = "session-1"):
    return ContinuationMessage(
        source_key=_SOURCE_KEY,
        notify_target="chat-1",
        next_part_index=next_part_index,
        session_id=session_id,
    )


def _service(
    store: InMemoryCheckpointStore | None = None,
    scheduler: RecordingScheduler | None = None,
) -> tuple[RelayService, FakeEngine, RecordingScheduler]:
    engine = FakeEngine()
    scheduler = scheduler or RecordingScheduler()
    service = RelayService(
        engine=engine,  # type: ignore[arg-type]
        checkpoint_store=store or InMemoryCheckpointStore(),
        scheduler=scheduler,
    )
    return service, engine, scheduler


def test_start_schedules_fresh_invocation() -> None:
    service, _, scheduler = _service()

    response = asyncio.run(
        service.start(RelayStartMessage(source_url=f"  {_SOURCE_KEY} ", notify_target="chat-1"))
    )

    assert response.source_key == _SOURCE_KEY
    assert response.next_part_index == 0
    assert scheduler.requests == [
        ContinuationRequest(source_key=_SOURCE_KEY, notify_target="chat-1")
    ]


def test_rejected_schedule_raises_dispatch_error() -> None:
    service, _, _ = _service(scheduler=RecordingScheduler(accept=False))

    with pytest.raises(ContinuationDispatchError):
        asyncio.run(
            service.start(RelayStartMessage(source_url=_SOURCE_KEY, notify_target="chat-1"))
        )


def test_continuation_without_checkpoint_is_not_found() -> None:
    service, _, scheduler = _service()

    with pytest.raises(CheckpointNotFoundError):
        asyncio.run(service.continue_relay(_continuation()))

    assert scheduler.requests == []


def test_continuation_for_superseded_session_conflicts() -> None:
    store = InMemoryCheckpointStore()
    asyncio.run(store.put(_session()))
    service, _, _ = _service(store=store)

    with pytest.raises(SessionConflictError):
        asyncio.run(service.continue_relay(_continuation(session_id="session-0")))


def test_continuation_for_failed_session_conflicts() -> None:
    store = InMemoryCheckpointStore()
    asyncio.run(store.put(_session(SessionStatus.FAILED)))
    service, _, _ = _service(store=store)

    with pytest.raises(SessionConflictError):
        asyncio.run(service.continue_relay(_continuation()))


def test_continuation_past_total_parts_is_invalid() -> None:
    store = InMemoryCheckpointStore()
    asyncio.run(store.put(_session()))
    service, _, _ = _service(store=store)

    with pytest.raises(RelayValidationError):
        asyncio.run(service.continue_relay(_continuation(next_part_index=5)))


def test_valid_continuation_is_scheduled() -> None:
    store = InMemoryCheckpointStore()
    asyncio.run(store.put(_session()))
    service, _, scheduler = _service(store=store)

    response = asyncio.run(service.continue_relay(_continuation()))

    assert response.next_part_index == 2
    assert scheduler.requests[0].session_id == "session-1"


def test_invoke_runs_engine_synchronously() -> None:
    service, engine, scheduler = _service()

    response = asyncio.run(service.invoke(_continuation(next_part_index=0, session_id=None)))

    assert response.status is InvocationStatus.DONE
    assert response.parts_uploaded == 4
    assert len(engine.requests) == 1
    assert scheduler.requests == []


def test_management_lookups() -> None:
    store = InMemoryCheckpointStore()
    asyncio.run(store.put(_session()))
    service, _, _ = _service(store=store)

    listed = asyncio.run(service.list_checkpoints())
    found = asyncio.run(service.get_checkpoint(_SOURCE_KEY))

    assert [checkpoint.session_id for checkpoint in listed.checkpoints] == ["session-1"]
    assert found.total_parts == 4
    assert found.handoff_part_index == 2
    with pytest.raises(CheckpointNotFoundError):
        asyncio.run(service.get_checkpoint("https://cdn.example.com/other.bin"))


def test_reaper_run_requires_reaper() -> None:
    service, _, _ = _service()

    with pytest.raises(RelayConfigError):
        asyncio.run(service.run_reaper_once())


def test_relay_trampolines_through_local_queue_until_done() -> None:
    data = bytes(index % 253 for index in range(20 * _PART_SIZE + 100))
    clock = FakeClock()
    store = InMemoryCheckpointStore()
    reader = BytesSourceReader(data)
    client = SlowInMemoryBigObjectClient(clock, seconds_per_part=11.0)

    async def scenario() -> None:
        queue = InProcessContinuationQueue(worker_count=2)
        engine = RelayEngine(
            options=RelayEngineOptions(part_size=_PART_SIZE),
            checkpoint_store=store,
            source_reader=reader,
            client=client,
            continuation_trigger=ContinuationTrigger(queue, max_attempts=1),
            notifier=LoggingNotifier(),
            clock=clock,
        )
        service = RelayService(engine=engine, checkpoint_store=store, scheduler=queue)
        await service.startup()
        try:
            await service.start(RelayStartMessage(source_url=_SOURCE_KEY, notify_target="chat-1"))
            await asyncio.wait_for(queue.join(), timeout=5.0)
        finally:
            await service.shutdown()

    asyncio.run(scenario())

    assert reader.opened_at[:3] == [0, 7 * _PART_SIZE, 14 * _PART_SIZE]
    assert len(client.session_ids) == 1
    composed = client.composed(client.session_ids[0])
    assert composed is not None
    assert composed.data == data
    assert asyncio.run(store.get(_SOURCE_KEY)) is None
