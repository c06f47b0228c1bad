from __future__ import annotations

import pytest

from chunked_relay.application.relay import ChunkAssembler
from chunked_relay.domain import part_length, total_parts_for

_PART_SIZE = 524_288


def _assemble(data: bytes, read_size: int, part_size: int = _PART_SIZE, start_index: int = 0):
    assembler = ChunkAssembler(part_size, start_index=start_index)
    parts = []
    for offset in range(0, len(data), read_size):
        parts.extend(assembler.feed(data[offset : offset + read_size]))
    final_part = assembler.finish()
    if final_part is not None:
        parts.append(final_part)
    return parts


def test_two_million_bytes_split_into_four_parts() -> None:
    data = bytes(index % 251 for index in range(2_000_000))

    parts = _assemble(data, read_size=65_536)

    assert total_parts_for(len(data), _PART_SIZE) == 4
    assert [part.part_index for part in parts] == [0, 1, 2, 3]
    assert [part.length for part in parts] == [524_288, 524_288, 524_288, 427_136]
    assert sum(part.length for part in parts) == 2_000_000
    assert b"".join(part.data for part in parts) == data


def test_irregular_reads_produce_identical_parts() -> None:
    data = bytes(index % 13 for index in range(10_000))

    small_reads = _assemble(data, read_size=7, part_size=1024)
    large_reads = _assemble(data, read_size=5000, part_size=1024)

    assert small_reads == large_reads
    for part in small_reads[:-1]:
        assert part.length == 1024
    assert small_reads[-1].length == part_length(9, len(data), 1024) == 784


def test_exact_multiple_has_no_short_tail() -> None:
    parts = _assemble(b"x" * 4096, read_size=1000, part_size=1024)

    assert [part.length for part in parts] == [1024, 1024, 1024, 1024]


def test_start_index_offsets_emitted_part_indices() -> None:
    parts = _assemble(b"y" * 3000, read_size=512, part_size=1024, start_index=7)

    assert [part.part_index for part in parts] == [7, 8, 9]


def test_feed_after_finish_is_rejected() -> None:
    assembler = ChunkAssembler(16)
    assembler.feed(b"abc")
    assert assembler.finish() is not None
    assert assembler.finish() is None

    with pytest.raises(RuntimeError):
        assembler.feed(b"more")


def test_part_length_rejects_indices_outside_the_object() -> None:
    with pytest.raises(ValueError):
        part_length(4, 2_000_000, _PART_SIZE)
    with pytest.raises(ValueError):
        part_length(-1, 2_000_000, _PART_SIZE)
