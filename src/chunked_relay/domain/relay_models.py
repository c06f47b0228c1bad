"""Pydantic models for the relay HTTP surface."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chunked_relay.domain.entities import (
    ContinuationRequest,
    InvocationOutcome,
    InvocationStatus,
    TransferSession,
)
from chunked_relay.domain.session_states import SessionStatus


class RelayModel(BaseModel):
    """Base model for relay messages."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class RelayStartMessage(RelayModel):
    """Request to relay one source URL to the destination."""

    source_url: str = Field(alias="sourceUrl")
    notify_target: str = Field(alias="notifyTarget")

    @field_validator("source_url")
    @classmethod
    def require_http_url(cls, value: str) -> str:
        """Only http(s) sources can be relayed."""

        normalized = value.strip()
        if not normalized.lower().startswith(("http://", "https://")):
            raise ValueError("sourceUrl must be an http(s) URL.")
        return normalized


class ContinuationMessage(RelayModel):
    """Wire form of the resumption cursor exchanged between invocations."""

    source_key: str = Field(alias="sourceKey")
    notify_target: str = Field(alias="notifyTarget")
    next_part_index: int = Field(default=0, alias="nextPartIndex", ge=0)
    status_handle: str | None = Field(default=None, alias="statusHandle")
    session_id: str | None = Field(default=None, alias="sessionId")

    @classmethod
    def from_request(cls, request: ContinuationRequest) -> "ContinuationMessage":
        return cls(
            source_key=request.source_key,
            notify_target=request.notify_target,
            next_part_index=request.next_part_index,
            status_handle=request.status_handle,
            session_id=request.session_id,
        )

    def to_request(self) -> ContinuationRequest:
        return ContinuationRequest(
            source_key=self.source_key,
            notify_target=self.notify_target,
            next_part_index=self.next_part_index,
            status_handle=self.status_handle,
            session_id=self.session_id,
        )


class RelayAcceptedResponse(RelayModel):
    """Acknowledgement returned when an invocation was scheduled."""

    source_key: str = Field(alias="sourceKey")
    next_part_index: int = Field(alias="nextPartIndex")
    accepted: bool = True


class InvocationOutcomeResponse(RelayModel):
    """Serialized result of a synchronous invocation."""

    status: InvocationStatus
    next_part_index: int = Field(alias="nextPartIndex")
    parts_uploaded: int = Field(alias="partsUploaded")
    session_id: str | None = Field(default=None, alias="sessionId")
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: InvocationOutcome) -> "InvocationOutcomeResponse":
        return cls(
            status=outcome.status,
            next_part_index=outcome.next_part_index,
            parts_uploaded=outcome.parts_uploaded,
            session_id=outcome.session_id,
            error=outcome.error,
        )


class CheckpointInfoResponse(RelayModel):
    """Management view of one checkpoint."""

    source_key: str = Field(alias="sourceKey")
    session_id: str = Field(alias="sessionId")
    status: SessionStatus
    filename: str
    total_size: int = Field(alias="totalSize")
    part_size: int = Field(alias="partSize")
    total_parts: int = Field(alias="totalParts")
    handoff_part_index: int = Field(alias="handoffPartIndex")
    redispatch_count: int = Field(alias="redispatchCount")
    last_error: str | None = Field(default=None, alias="lastError")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    expires_at: datetime = Field(alias="expiresAt")

    @classmethod
    def from_session(cls, session: TransferSession) -> "CheckpointInfoResponse":
        return cls(
            source_key=session.source_key,
            session_id=session.session_id,
            status=session.status,
            filename=session.filename,
            total_size=session.total_size,
            part_size=session.part_size,
            total_parts=session.total_parts,
            handoff_part_index=session.handoff_part_index,
            redispatch_count=session.redispatch_count,
            last_error=session.last_error,
            created_at=session.created_at,
            updated_at=session.updated_at,
            expires_at=session.expires_at,
        )


class CheckpointListResponse(RelayModel):
    """Collection wrapper for the checkpoint management endpoint."""

    checkpoints: list[CheckpointInfoResponse]


class ReaperRunResponse(RelayModel):
    """Summary of one reaper pass."""

    redispatched: int
    failed: int


__all__ = [
    "CheckpointInfoResponse",
    "CheckpointListResponse",
    "ContinuationMessage",
    "InvocationOutcomeResponse",
    "ReaperRunResponse",
    "RelayAcceptedResponse",
    "RelayStartMessage",
]
