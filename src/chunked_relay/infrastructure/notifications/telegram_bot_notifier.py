"""Telegram Bot API notifier."""

from __future__ import annotations

from typing import Any

import httpx

from chunked_relay.domain.ports import Notifier

_NOT_MODIFIED_MARKER = "message is not modified"


class NotifierError(RuntimeError):
    """Raised when a notification call fails."""


class TelegramBotNotifier(Notifier):
    """Send and edit chat messages through `sendMessage`/`editMessageText`.

    The message id of a sent message is the status handle.
    """

    def __init__(
        self,
        bot_token: str,
        api_base_url: str = "https://api.telegram.org",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not bot_token.strip():
            raise NotifierError("Telegram bot token cannot be empty.")
        self._bot_token = bot_token.strip()
        self._api_base_url = api_base_url.strip().rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def send_text(self, target: str, text: str) -> str | None:
        """Call `sendMessage` and return the new message id."""

        result = await self._call("sendMessage", {"chat_id": target, "text": text})
        if isinstance(result, dict) and "message_id" in result:
            return str(result["message_id"])
        return None

    async def edit_text(self, target: str, handle: str, text: str) -> None:
        """Call `editMessageText`; an unchanged text is not an error."""

        try:
            await self._call(
                "editMessageText",
                {"chat_id": target, "message_id": int(handle), "text": text},
            )
        except NotifierError as exc:
            if _NOT_MODIFIED_MARKER in str(exc):
                return
            raise

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        url = f"{self._api_base_url}/bot{self._bot_token}/{method}"
        redacted_url = f"{self._api_base_url}/bot<redacted>/{method}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http_client:
                response = await http_client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise NotifierError(f"POST {redacted_url} failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success and isinstance(body, dict) and body.get("ok"):
            return body.get("result")

        detail = response.text.strip() or "<no response body>"
        if isinstance(body, dict) and isinstance(body.get("description"), str):
            detail = body["description"]
        raise NotifierError(f"POST {redacted_url} failed: {response.status_code} {detail}")


__all__ = ["NotifierError", "TelegramBotNotifier"]
