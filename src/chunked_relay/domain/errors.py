"""Domain exceptions for relay sessions."""


class RelayError(Exception):
    """Base class for relay errors."""


class RelayConfigError(RelayError):
    """Raised when a required capability or credential is missing."""


class RelayValidationError(RelayError):
    """Raised when request validation fails."""


class CheckpointNotFoundError(RelayError):
    """Raised when no checkpoint exists for a source key."""


class SessionConflictError(RelayError):
    """Raised when a continuation targets a superseded or terminal session."""


class SourceError(RelayError):
    """Base class for source-side failures."""


class SourceUnreachableError(SourceError):
    """Raised on non-2xx or range-unsatisfiable source responses."""


class RangeUnsupportedError(SourceError):
    """Raised when a large source cannot be resumed without range support."""


class SourceSizeUnknownError(SourceError):
    """Raised when a source has no size and exceeds the buffering ceiling."""


class UploadPartFailureError(RelayError):
    """Raised when the destination rejects a part after its retry."""

    def __init__(self, part_index: int, message: str) -> None:
        super().__init__(message)
        self.part_index = part_index


class ContinuationDispatchError(RelayError):
    """Raised when a continuation could not be handed off."""


class FinalizeFailureError(RelayError):
    """Raised when the destination rejects the compose request."""


__all__ = [
    "CheckpointNotFoundError",
    "ContinuationDispatchError",
    "FinalizeFailureError",
    "RangeUnsupportedError",
    "RelayConfigError",
    "RelayError",
    "RelayValidationError",
    "SessionConflictError",
    "SourceError",
    "SourceSizeUnknownError",
    "SourceUnreachableError",
    "UploadPartFailureError",
]
