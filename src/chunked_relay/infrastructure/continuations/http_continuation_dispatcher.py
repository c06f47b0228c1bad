"""Continuation dispatch through this service's own HTTP endpoint."""

from __future__ import annotations

import logging

import httpx

from chunked_relay.domain.entities import ContinuationRequest
from chunked_relay.domain.errors import ContinuationDispatchError
from chunked_relay.domain.ports import ContinuationDispatcher
from chunked_relay.domain.relay_models import ContinuationMessage

logger = logging.getLogger(__name__)


class HttpContinuationDispatcher(ContinuationDispatcher):
    """POST the cursor to `{base_url}/relays/continue`.

    2xx means accepted, 4xx means rejected for good, and 5xx or a
    transport error raises so the caller can retry.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        normalized = base_url.strip().rstrip("/")
        if not normalized:
            raise ContinuationDispatchError("Continuation URL cannot be empty.")
        self._url = f"{normalized}/relays/continue"
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def dispatch(self, request: ContinuationRequest) -> bool:
        message = ContinuationMessage.from_request(request)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http_client:
                response = await http_client.post(
                    self._url,
                    json=message.model_dump(by_alias=True, exclude_none=True),
                )
        except httpx.HTTPError as exc:
            raise ContinuationDispatchError(f"POST {self._url} failed: {exc}") from exc

        if response.is_success:
            return True
        if response.is_client_error:
            logger.warning(
                "Continuation for '%s' at part %s rejected: %s %s",
                request.source_key,
                request.next_part_index,
                response.status_code,
                response.text.strip() or "<no response body>",
            )
            return False
        raise ContinuationDispatchError(
            f"POST {self._url} failed: {response.status_code} "
            f"{response.text.strip() or '<no response body>'}"
        )


__all__ = ["HttpContinuationDispatcher"]
