"""Notifier that only writes to the application log."""

from __future__ import annotations

import itertools
import logging

from chunked_relay.domain.ports import Notifier

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):
    """Log notifications instead of delivering them."""

    def __init__(self) -> None:
        self._handles = itertools.count(1)

    async def send_text(self, target: str, text: str) -> str | None:
        handle = str(next(self._handles))
        logger.info("[%s #%s] %s", target, handle, text)
        return handle

    async def edit_text(self, target: str, handle: str, text: str) -> None:
        logger.info("[%s #%s edited] %s", target, handle, text)


__all__ = ["LoggingNotifier"]
