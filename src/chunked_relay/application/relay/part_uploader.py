"""Part upload with one immediate retry and bounded batch fan-out."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from chunked_relay.domain.entities import Part
from chunked_relay.domain.errors import UploadPartFailureError
from chunked_relay.domain.ports import BigObjectClient

_MAX_ATTEMPTS = 2

logger = logging.getLogger(__name__)


class PartUploader:
    """Push parts to the destination's part-upload protocol.

    A batch of up to `concurrency` parts is uploaded concurrently and the call
    only returns once every upload in the batch has resolved.
    """

    def __init__(self, client: BigObjectClient, concurrency: int = 1) -> None:
        self._client = client
        self._concurrency = max(1, concurrency)

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def upload(self, session_id: str, part: Part, total_parts: int) -> None:
        """Upload one part, retrying once before giving up on the session."""

        last_error: Exception | None = None
        for attempt in range(1, _MAX_ATTEMPTS + 1):
            try:
                await self._client.save_part(session_id, part.part_index, total_parts, part.data)
                return
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning(
                    "Upload of part %s/%s for session '%s' failed (attempt %s): %s",
                    part.part_index,
                    total_parts,
                    session_id,
                    attempt,
                    exc,
                )

        raise UploadPartFailureError(
            part.part_index,
            f"Part {part.part_index} was rejected after {_MAX_ATTEMPTS} attempts: {last_error}",
        ) from last_error

    async def upload_batch(
        self,
        session_id: str,
        parts: Sequence[Part],
        total_parts: int,
    ) -> None:
        """Upload a closed batch; raise the first failure after all have resolved."""

        if len(parts) > self._concurrency:
            raise ValueError(
                f"Batch of {len(parts)} parts exceeds upload concurrency {self._concurrency}."
            )
        results = await asyncio.gather(
            *[self.upload(session_id, part, total_parts) for part in parts],
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result


__all__ = ["PartUploader"]
