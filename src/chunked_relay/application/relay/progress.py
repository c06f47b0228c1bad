"""Rate-limited, best-effort status updates."""

from __future__ import annotations

import logging
import time

from chunked_relay.application.relay.deadline import Clock
from chunked_relay.domain.ports import Notifier

logger = logging.getLogger(__name__)


def format_size(size_bytes: int) -> str:
    return f"{size_bytes / (1024 * 1024):.2f}MB"


class ProgressReporter:
    """Push status text to one notify target without ever failing the transfer.

    The first message sent becomes the status handle; later progress edits
    that message. Updates are coalesced to at most one per
    `min_interval_seconds` and one per `every_parts` parts.
    """

    def __init__(
        self,
        notifier: Notifier,
        target: str,
        *,
        status_handle: str | None = None,
        min_interval_seconds: float = 5.0,
        every_parts: int = 20,
        clock: Clock = time.monotonic,
    ) -> None:
        self._notifier = notifier
        self._target = target
        self._handle = status_handle
        self._min_interval_seconds = max(min_interval_seconds, 0.0)
        self._every_parts = max(every_parts, 1)
        self._clock = clock
        self._last_sent_at: float | None = None
        self._last_reported_parts: int | None = None

    @property
    def status_handle(self) -> str | None:
        return self._handle

    async def status(self, text: str) -> None:
        """Replace the status message, creating it when no handle exists yet."""

        try:
            if self._handle is None:
                self._handle = await self._notifier.send_text(self._target, text)
            else:
                await self._notifier.edit_text(self._target, self._handle, text)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Status update to '%s' failed: %s", self._target, exc)
            return
        self._last_sent_at = self._clock()

    async def announce(self, text: str) -> None:
        """Send a standalone message (terminal outcomes, alerts)."""

        try:
            await self._notifier.send_text(self._target, text)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Notification to '%s' failed: %s", self._target, exc)

    async def report(self, filename: str, parts_done: int, total_parts: int) -> bool:
        """Publish progress if the rate limit allows; return whether it was sent."""

        if not self._due(parts_done):
            return False
        self._last_reported_parts = parts_done
        percent = 100.0 if total_parts <= 0 else parts_done / total_parts * 100
        await self.status(f"Relaying {filename}: {percent:.1f}% ({parts_done}/{total_parts} parts)")
        return True

    def _due(self, parts_done: int) -> bool:
        if self._last_reported_parts is None:
            return True
        if parts_done == self._last_reported_parts:
            return False
        if parts_done - self._last_reported_parts >= self._every_parts:
            return True
        if self._last_sent_at is None:
            return True
        return self._clock() - self._last_sent_at >= self._min_interval_seconds


__all__ = ["ProgressReporter", "format_size"]
