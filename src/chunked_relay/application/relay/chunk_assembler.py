"""Turns an arbitrary stream of reads into fixed-size, indexed parts."""

from __future__ import annotations

from chunked_relay.domain.entities import Part


class ChunkAssembler:
    """Accumulate source reads and cut them into parts of exactly `part_size`.

    Every byte fed in appears in exactly one emitted part, parts are emitted
    in strictly increasing index order starting at `start_index`, and only the
    part produced by `finish()` may be shorter than `part_size`.
    """

    def __init__(self, part_size: int, start_index: int = 0) -> None:
        if part_size <= 0:
            raise ValueError("part_size must be > 0")
        if start_index < 0:
            raise ValueError("start_index must be >= 0")
        self._part_size = part_size
        self._next_index = start_index
        self._buffer = bytearray()
        self._finished = False

    @property
    def next_part_index(self) -> int:
        """Index the next emitted part will carry."""

        return self._next_index

    @property
    def buffered_bytes(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> list[Part]:
        """Append one read and return every full part now available."""

        if self._finished:
            raise RuntimeError("ChunkAssembler already finished")
        self._buffer.extend(data)
        parts: list[Part] = []
        while len(self._buffer) >= self._part_size:
            parts.append(self._emit(self._part_size))
        return parts

    def finish(self) -> Part | None:
        """Signal end-of-stream and flush the remainder as the final part."""

        if self._finished:
            return None
        self._finished = True
        if not self._buffer:
            return None
        return self._emit(len(self._buffer))

    def _emit(self, length: int) -> Part:
        data = bytes(self._buffer[:length])
        del self._buffer[:length]
        part = Part(part_index=self._next_index, data=data)
        self._next_index += 1
        return part


__all__ = ["ChunkAssembler"]
