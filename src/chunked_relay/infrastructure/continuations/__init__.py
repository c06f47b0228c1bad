"""Continuation dispatch and recovery implementations."""

from chunked_relay.infrastructure.continuations.http_continuation_dispatcher import (
    HttpContinuationDispatcher,
)
from chunked_relay.infrastructure.continuations.in_process_continuation_queue import (
    ContinuationRunner,
    InProcessContinuationQueue,
)
from chunked_relay.infrastructure.continuations.stale_session_reaper import (
    ReaperRunSummary,
    StaleSessionReaper,
)

__all__ = [
    "ContinuationRunner",
    "HttpContinuationDispatcher",
    "InProcessContinuationQueue",
    "ReaperRunSummary",
    "StaleSessionReaper",
]
