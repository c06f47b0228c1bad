"""Infrastructure layer public API."""

from chunked_relay.infrastructure.checkpoints import (
    InMemoryCheckpointStore,
    PostgresCheckpointStore,
)
from chunked_relay.infrastructure.continuations import (
    HttpContinuationDispatcher,
    InProcessContinuationQueue,
    StaleSessionReaper,
)
from chunked_relay.infrastructure.destination import (
    DestinationClientError,
    HttpBigObjectClient,
    InMemoryBigObjectClient,
)
from chunked_relay.infrastructure.notifications import (
    LoggingNotifier,
    NotifierError,
    TelegramBotNotifier,
)
from chunked_relay.infrastructure.sources import HttpSourceReader

__all__ = [
    "DestinationClientError",
    "HttpBigObjectClient",
    "HttpContinuationDispatcher",
    "HttpSourceReader",
    "InMemoryBigObjectClient",
    "InMemoryCheckpointStore",
    "InProcessContinuationQueue",
    "LoggingNotifier",
    "NotifierError",
    "PostgresCheckpointStore",
    "StaleSessionReaper",
    "TelegramBotNotifier",
]
