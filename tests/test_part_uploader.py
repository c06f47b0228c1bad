from __future__ import annotations

import asyncio

import pytest

from chunked_relay.application.relay import PartUploader
from chunked_relay.domain import ContentAttributes, Part, UploadPartFailureError


class FlakyBigObjectClient:
    def __init__(self, failures: dict[int, int] | None = None) -> None:
        self._failures = dict(failures or {})
        self.calls: list[tuple[int, bytes]] = []
        self.stored: dict[int, bytes] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def open_session(self, *, filename: str, total_parts: int) -> str:
        return "session-1"

    async def save_part(
        self,
        session_id: str,
        part_index: int,
        total_parts: int,
        data: bytes,
    ) -> None:
        self.calls.append((part_index, data))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            remaining = self._failures.get(part_index, 0)
            if remaining:
                self._failures[part_index] = remaining - 1
                raise RuntimeError(f"part {part_index} rejected")
            self.stored[part_index] = data
        finally:
            self.in_flight -= 1

    async def compose(
        self,
        session_id: str,
        *,
        total_parts: int,
        filename: str,
        attributes: ContentAttributes,
        notify_target: str,
    ) -> None:
        return None


def test_failed_part_is_retried_once_with_identical_bytes() -> None:
    client = FlakyBigObjectClient(failures={3: 1})
    uploader = PartUploader(client)

    asyncio.run(uploader.upload("session-1", Part(part_index=3, data=b"payload"), 10))

    assert client.calls == [(3, b"payload"), (3, b"payload")]
    assert client.stored == {3: b"payload"}


def test_second_failure_raises_upload_part_failure() -> None:
    client = FlakyBigObjectClient(failures={5: 2})
    uploader = PartUploader(client)

    with pytest.raises(UploadPartFailureError) as exc_info:
        asyncio.run(uploader.upload("session-1", Part(part_index=5, data=b"abc"), 10))

    assert exc_info.value.part_index == 5
    assert "part 5 rejected" in str(exc_info.value)
    assert len(client.calls) == 2


def test_batch_runs_concurrently_and_waits_for_every_part() -> None:
    client = FlakyBigObjectClient()
    uploader = PartUploader(client, concurrency=4)
    parts = [Part(part_index=index, data=bytes([index])) for index in range(4)]

    asyncio.run(uploader.upload_batch("session-1", parts, 4))

    assert client.max_in_flight == 4
    assert sorted(client.stored) == [0, 1, 2, 3]


def test_batch_failure_is_raised_after_all_uploads_resolved() -> None:
    client = FlakyBigObjectClient(failures={1: 2})
    uploader = PartUploader(client, concurrency=3)
    parts = [Part(part_index=index, data=b"z") for index in range(3)]

    with pytest.raises(UploadPartFailureError):
        asyncio.run(uploader.upload_batch("session-1", parts, 3))

    assert sorted(client.stored) == [0, 2]


def test_batch_larger_than_concurrency_is_rejected() -> None:
    uploader = PartUploader(FlakyBigObjectClient(), concurrency=2)
    parts = [Part(part_index=index, data=b"z") for index in range(3)]

    with pytest.raises(ValueError):
        asyncio.run(uploader.upload_batch("session-1", parts, 3))
