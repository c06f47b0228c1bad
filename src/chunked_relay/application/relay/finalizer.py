"""Compose uploaded parts into the final object exactly once."""

from __future__ import annotations

import logging

from chunked_relay.application.relay.classification import classify_content
from chunked_relay.domain.entities import TransferSession
from chunked_relay.domain.errors import FinalizeFailureError
from chunked_relay.domain.ports import BigObjectClient, CheckpointStore
from chunked_relay.domain.session_states import SessionStatus

_FINALIZABLE = frozenset({SessionStatus.STREAMING})

logger = logging.getLogger(__name__)


class Finalizer:
    """Guard compose with a STREAMING -> FINALIZING swap in the checkpoint store."""

    def __init__(self, checkpoint_store: CheckpointStore, client: BigObjectClient) -> None:
        self._checkpoint_store = checkpoint_store
        self._client = client

    async def finalize(self, session: TransferSession) -> bool:
        """Compose the object; return False when another invocation owns finalize.

        On compose failure the checkpoint is kept in FAILED state for
        inspection and `FinalizeFailureError` carries the destination error
        text unchanged.
        """

        claimed = await self._checkpoint_store.compare_and_set_status(
            session.source_key,
            session_id=session.session_id,
            expected=_FINALIZABLE,
            new_status=SessionStatus.FINALIZING,
        )
        if not claimed:
            logger.warning(
                "Skipping finalize of session '%s' for '%s': already claimed elsewhere.",
                session.session_id,
                session.source_key,
            )
            return False
        session.status = SessionStatus.FINALIZING

        attributes = classify_content(session.filename, session.content_type)
        try:
            await self._client.compose(
                session.session_id,
                total_parts=session.total_parts,
                filename=session.filename,
                attributes=attributes,
                notify_target=session.notify_target,
            )
        except Exception as exc:  # noqa: BLE001
            error = str(exc)
            session.status = SessionStatus.FAILED
            session.last_error = error
            await self._checkpoint_store.compare_and_set_status(
                session.source_key,
                session_id=session.session_id,
                expected=frozenset({SessionStatus.FINALIZING}),
                new_status=SessionStatus.FAILED,
                last_error=error,
            )
            raise FinalizeFailureError(error) from exc

        removed = await self._checkpoint_store.delete(
            session.source_key, session_id=session.session_id
        )
        if not removed:
            logger.info(
                "Checkpoint for '%s' now belongs to a newer session; leaving it in place.",
                session.source_key,
            )
        session.status = SessionStatus.DONE
        logger.info(
            "Finalized session '%s' for '%s' (%s parts, %s).",
            session.session_id,
            session.source_key,
            session.total_parts,
            attributes.kind,
        )
        return True


__all__ = ["Finalizer"]
