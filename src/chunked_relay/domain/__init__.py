"""Domain public API."""

from chunked_relay.domain.entities import (
    ContentAttributes,
    ContentKind,
    ContinuationRequest,
    InvocationOutcome,
    InvocationStatus,
    Part,
    SourceMetadata,
    TransferSession,
    part_length,
    total_parts_for,
)
from chunked_relay.domain.errors import (
    CheckpointNotFoundError,
    ContinuationDispatchError,
    FinalizeFailureError,
    RangeUnsupportedError,
    RelayConfigError,
    RelayError,
    RelayValidationError,
    SessionConflictError,
    SourceError,
    SourceSizeUnknownError,
    SourceUnreachableError,
    UploadPartFailureError,
)
from chunked_relay.domain.ports import (
    BigObjectClient,
    CheckpointStore,
    ContinuationDispatcher,
    ManagedContinuationDispatcher,
    Notifier,
    SourceReader,
    SourceStream,
)
from chunked_relay.domain.relay_models import (
    CheckpointInfoResponse,
    CheckpointListResponse,
    ContinuationMessage,
    InvocationOutcomeResponse,
    ReaperRunResponse,
    RelayAcceptedResponse,
    RelayStartMessage,
)
from chunked_relay.domain.session_states import (
    RESUMABLE_STATUSES,
    TERMINAL_STATUSES,
    SessionStatus,
    can_transition,
)

__all__ = [
    "BigObjectClient",
    "CheckpointInfoResponse",
    "CheckpointListResponse",
    "CheckpointNotFoundError",
    "CheckpointStore",
    "ContentAttributes",
    "ContentKind",
    "ContinuationDispatchError",
    "ContinuationDispatcher",
    "ContinuationMessage",
    "ContinuationRequest",
    "FinalizeFailureError",
    "InvocationOutcome",
    "InvocationOutcomeResponse",
    "InvocationStatus",
    "ManagedContinuationDispatcher",
    "Notifier",
    "Part",
    "RESUMABLE_STATUSES",
    "RangeUnsupportedError",
    "ReaperRunResponse",
    "RelayAcceptedResponse",
    "RelayConfigError",
    "RelayError",
    "RelayStartMessage",
    "RelayValidationError",
    "SessionConflictError",
    "SessionStatus",
    "SourceError",
    "SourceMetadata",
    "SourceReader",
    "SourceSizeUnknownError",
    "SourceStream",
    "SourceUnreachableError",
    "TERMINAL_STATUSES",
    "TransferSession",
    "UploadPartFailureError",
    "can_transition",
    "part_length",
    "total_parts_for",
]
