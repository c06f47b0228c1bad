"""HTTP client for the destination big-object upload protocol."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from chunked_relay.domain.entities import ContentAttributes
from chunked_relay.domain.ports import BigObjectClient


class DestinationClientError(RuntimeError):
    """Raised when destination calls fail."""


class HttpBigObjectClient(BigObjectClient):
    """Wrapper around the destination's `/uploads` endpoints.

    - `POST /uploads` opens a session and returns `sessionId`.
    - `PUT /uploads/{sessionId}/parts/{partIndex}?totalParts=N` stores a part.
    - `POST /uploads/{sessionId}/compose` assembles and delivers the object.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = self._normalize_base_url(base_url)
        self._token = token
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def open_session(self, *, filename: str, total_parts: int) -> str:
        """Call `POST /uploads`."""

        response = await self._request(
            "POST",
            "/uploads",
            json={"filename": filename, "totalParts": total_parts},
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise DestinationClientError(
                f"POST {response.request.url} returned a non-JSON body."
            ) from exc
        session_id = payload.get("sessionId") if isinstance(payload, dict) else None
        if not isinstance(session_id, str) or not session_id:
            raise DestinationClientError(
                f"POST {response.request.url} returned no sessionId: {payload}"
            )
        return session_id

    async def save_part(
        self,
        session_id: str,
        part_index: int,
        total_parts: int,
        data: bytes,
    ) -> None:
        """Call `PUT /uploads/{sessionId}/parts/{partIndex}`."""

        session_path = quote(session_id, safe="")
        await self._request(
            "PUT",
            f"/uploads/{session_path}/parts/{part_index}",
            params={"totalParts": total_parts},
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )

    async def compose(
        self,
        session_id: str,
        *,
        total_parts: int,
        filename: str,
        attributes: ContentAttributes,
        notify_target: str,
    ) -> None:
        """Call `POST /uploads/{sessionId}/compose`."""

        session_path = quote(session_id, safe="")
        await self._request(
            "POST",
            f"/uploads/{session_path}/compose",
            json={
                "totalParts": total_parts,
                "filename": filename,
                "kind": attributes.kind.value,
                "mimeType": attributes.mime_type,
                "supportsStreaming": attributes.supports_streaming,
                "notifyTarget": notify_target,
            },
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = self._endpoint(path)
        headers = dict(kwargs.pop("headers", {}))
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http_client:
                response = await http_client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise DestinationClientError(f"{method} {url} failed: {exc}") from exc
        self._ensure_success(response)
        return response

    def _endpoint(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _ensure_success(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        message = self._detail_from_response(response)
        raise DestinationClientError(
            f"{response.request.method} {response.request.url} failed: "
            f"{response.status_code} {message}"
        )

    def _detail_from_response(self, response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            text = response.text.strip()
            return text or "<no response body>"

        if isinstance(payload, dict):
            detail = payload.get("detail") or payload.get("description")
            if isinstance(detail, str):
                return detail
        return str(payload)

    def _normalize_base_url(self, base_url: str) -> str:
        normalized = base_url.strip().rstrip("/")
        if not normalized:
            raise DestinationClientError("Destination endpoint cannot be empty.")
        return normalized


__all__ = ["DestinationClientError", "HttpBigObjectClient"]
