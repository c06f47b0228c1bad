"""Byte-range HTTP source reader."""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import unquote, urlsplit

import httpx

from chunked_relay.domain.entities import SourceMetadata
from chunked_relay.domain.errors import (
    RangeUnsupportedError,
    SourceSizeUnknownError,
    SourceUnreachableError,
)
from chunked_relay.domain.ports import SourceReader, SourceStream

_DEFAULT_FILENAME = "download.bin"
_DEFAULT_CHUNK_SIZE = 64 * 1024
_DEFAULT_LIMIT_BYTES = 50 * 1024 * 1024
_FILENAME_STAR_PATTERN = re.compile(r"filename\*\s*=\s*([^;]+)", re.IGNORECASE)
_FILENAME_PATTERN = re.compile(r'filename\s*=\s*("([^"]*)"|[^;]+)', re.IGNORECASE)
_CONTENT_RANGE_TOTAL_PATTERN = re.compile(r"/\s*(\d+)\s*$")

logger = logging.getLogger(__name__)


def filename_from_response(url: str, content_disposition: str | None) -> str:
    """Resolve a display filename from Content-Disposition, then the URL path."""

    if content_disposition:
        star_match = _FILENAME_STAR_PATTERN.search(content_disposition)
        if star_match is not None:
            value = star_match.group(1).strip().strip('"')
            _, _, encoded = value.rpartition("'")
            decoded = unquote(encoded).strip()
            if decoded:
                return _basename(decoded)
        match = _FILENAME_PATTERN.search(content_disposition)
        if match is not None:
            value = (match.group(2) if match.group(2) is not None else match.group(1)).strip()
            if value:
                return _basename(value)

    segment = urlsplit(url).path.rstrip("/").rpartition("/")[2]
    name = unquote(segment).strip()
    return name or _DEFAULT_FILENAME


def _basename(name: str) -> str:
    return name.replace("\\", "/").rpartition("/")[2] or _DEFAULT_FILENAME


class HttpSourceReader(SourceReader):
    """Open an HTTP(S) source at a byte offset.

    Metadata comes from a HEAD request. Sources without range support are only
    accepted up to `unranged_size_limit_bytes`; resuming them re-reads and
    discards the already-uploaded prefix. Sources without a size are buffered
    up to `unknown_size_buffer_limit_bytes`.

    Bodies are relayed as served, never decoded: sizes and ranges refer to
    the stored representation, so `Accept-Encoding: identity` is requested
    and any `Content-Encoding` a server applies anyway passes through.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        user_agent: str = "Mozilla/5.0",
        unranged_size_limit_bytes: int = _DEFAULT_LIMIT_BYTES,
        unknown_size_buffer_limit_bytes: int = _DEFAULT_LIMIT_BYTES,
        chunk_size: int = _DEFAULT_CHUNK_SIZE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._user_agent = user_agent
        self._unranged_size_limit_bytes = unranged_size_limit_bytes
        self._unknown_size_buffer_limit_bytes = unknown_size_buffer_limit_bytes
        self._chunk_size = max(chunk_size, 1)
        self._transport = transport

    @asynccontextmanager
    async def open(self, url: str, start_byte: int = 0) -> AsyncIterator[SourceStream]:
        """Yield metadata plus the byte stream starting at `start_byte`."""

        if start_byte < 0:
            raise ValueError("start_byte must be >= 0")

        async with httpx.AsyncClient(
            timeout=self._timeout_seconds,
            transport=self._transport,
            follow_redirects=True,
            headers={"User-Agent": self._user_agent, "Accept-Encoding": "identity"},
        ) as http_client:
            advertised = await self._head_metadata(http_client, url)
            if start_byte == 0:
                self._ensure_resumable(url, advertised)

            request_headers = {}
            if start_byte > 0:
                if advertised.total_size is not None and start_byte >= advertised.total_size:
                    raise SourceUnreachableError(
                        f"Resume offset {start_byte} is beyond the "
                        f"{advertised.total_size}-byte source."
                    )
                request_headers["Range"] = f"bytes={start_byte}-"

            try:
                async with http_client.stream("GET", url, headers=request_headers) as response:
                    if response.status_code == httpx.codes.REQUESTED_RANGE_NOT_SATISFIABLE:
                        raise SourceUnreachableError(
                            f"GET {url} failed: 416 range bytes={start_byte}- not satisfiable"
                        )
                    if not response.is_success:
                        raise SourceUnreachableError(
                            f"GET {url} failed: {response.status_code} {response.reason_phrase}"
                        )

                    if start_byte == 0:
                        yield await self._fresh_stream(url, advertised, response)
                    else:
                        yield self._resumed_stream(url, advertised, response, start_byte)
            except httpx.HTTPError as exc:
                raise SourceUnreachableError(f"GET {url} failed: {exc}") from exc

    async def _head_metadata(self, http_client: httpx.AsyncClient, url: str) -> SourceMetadata:
        try:
            response = await http_client.head(url)
        except httpx.HTTPError as exc:
            raise SourceUnreachableError(f"HEAD {url} failed: {exc}") from exc
        if not response.is_success:
            raise SourceUnreachableError(
                f"HEAD {url} failed: {response.status_code} {response.reason_phrase}"
            )

        accept_ranges = response.headers.get("accept-ranges", "")
        return SourceMetadata(
            total_size=_content_length(response),
            filename=filename_from_response(url, response.headers.get("content-disposition")),
            supports_range="bytes" in accept_ranges.lower(),
            content_type=response.headers.get("content-type"),
        )

    def _ensure_resumable(self, url: str, advertised: SourceMetadata) -> None:
        if advertised.supports_range or advertised.total_size is None:
            return
        if advertised.total_size > self._unranged_size_limit_bytes:
            raise RangeUnsupportedError(
                f"Source {url} does not support byte ranges and is larger than "
                f"{self._unranged_size_limit_bytes} bytes."
            )

    async def _fresh_stream(
        self,
        url: str,
        advertised: SourceMetadata,
        response: httpx.Response,
    ) -> SourceStream:
        total_size = advertised.total_size
        if total_size is None:
            total_size = _content_length(response)
        if total_size is not None:
            metadata = SourceMetadata(
                total_size=total_size,
                filename=advertised.filename,
                supports_range=advertised.supports_range,
                content_type=advertised.content_type,
            )
            return SourceStream(
                metadata=metadata,
                start_byte=0,
                chunks=self._iter_chunks(url, response, skip_bytes=0),
            )

        buffered = await self._buffer_unknown_size(url, response)
        logger.info("Buffered %s bytes from '%s' (no size advertised).", len(buffered), url)
        metadata = SourceMetadata(
            total_size=len(buffered),
            filename=advertised.filename,
            supports_range=advertised.supports_range,
            content_type=advertised.content_type,
        )
        return SourceStream(
            metadata=metadata,
            start_byte=0,
            chunks=self._iter_buffer(buffered),
        )

    def _resumed_stream(
        self,
        url: str,
        advertised: SourceMetadata,
        response: httpx.Response,
        start_byte: int,
    ) -> SourceStream:
        skip_bytes = 0
        if response.status_code == httpx.codes.PARTIAL_CONTENT:
            total_size = _content_range_total(response)
            if total_size is None:
                total_size = advertised.total_size
        else:
            # Range ignored: the body starts at byte 0.
            total_size = advertised.total_size
            if total_size is None:
                total_size = _content_length(response)
            if total_size is not None and total_size > self._unranged_size_limit_bytes:
                raise RangeUnsupportedError(
                    f"Source {url} ignored the range request and is larger than "
                    f"{self._unranged_size_limit_bytes} bytes."
                )
            logger.info(
                "Source '%s' ignored the range request; discarding %s bytes.",
                url,
                start_byte,
            )
            skip_bytes = start_byte

        metadata = SourceMetadata(
            total_size=total_size,
            filename=advertised.filename,
            supports_range=advertised.supports_range and skip_bytes == 0,
            content_type=advertised.content_type,
        )
        return SourceStream(
            metadata=metadata,
            start_byte=start_byte,
            chunks=self._iter_chunks(url, response, skip_bytes=skip_bytes),
        )

    async def _buffer_unknown_size(self, url: str, response: httpx.Response) -> bytes:
        buffer = bytearray()
        async for chunk in response.aiter_raw(self._chunk_size):
            buffer.extend(chunk)
            if len(buffer) > self._unknown_size_buffer_limit_bytes:
                raise SourceSizeUnknownError(
                    f"Source {url} advertises no size and exceeds the "
                    f"{self._unknown_size_buffer_limit_bytes}-byte buffering limit."
                )
        if not buffer:
            raise SourceUnreachableError(f"Source {url} is empty.")
        return bytes(buffer)

    async def _iter_chunks(
        self,
        url: str,
        response: httpx.Response,
        *,
        skip_bytes: int,
    ) -> AsyncIterator[bytes]:
        remaining_skip = skip_bytes
        try:
            async for chunk in response.aiter_raw(self._chunk_size):
                if remaining_skip:
                    if len(chunk) <= remaining_skip:
                        remaining_skip -= len(chunk)
                        continue
                    chunk = chunk[remaining_skip:]
                    remaining_skip = 0
                yield chunk
        except httpx.HTTPError as exc:
            raise SourceUnreachableError(f"GET {url} failed mid-stream: {exc}") from exc
        if remaining_skip:
            raise SourceUnreachableError(
                f"Source {url} ended before the resume offset {skip_bytes}."
            )

    async def _iter_buffer(self, buffered: bytes) -> AsyncIterator[bytes]:
        for offset in range(0, len(buffered), self._chunk_size):
            yield buffered[offset : offset + self._chunk_size]


def _content_length(response: httpx.Response) -> int | None:
    value = response.headers.get("content-length")
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length >= 0 else None


def _content_range_total(response: httpx.Response) -> int | None:
    value = response.headers.get("content-range")
    if value is None:
        return None
    match = _CONTENT_RANGE_TOTAL_PATTERN.search(value)
    if match is None:
        return None
    return int(match.group(1))


__all__ = ["HttpSourceReader", "filename_from_response"]
