"""Application bootstrap/wiring."""

import logging

from chunked_relay.application.relay import (
    ContinuationTrigger,
    RelayEngine,
    RelayEngineOptions,
)
from chunked_relay.application.services import RelayService
from chunked_relay.config import (
    CheckpointBackend,
    ContinuationBackend,
    DestinationBackend,
    NotifierBackend,
    Settings,
)
from chunked_relay.domain.errors import RelayConfigError
from chunked_relay.domain.ports import (
    BigObjectClient,
    CheckpointStore,
    ContinuationDispatcher,
    Notifier,
)
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
    HttpBigObjectClient,
    InMemoryBigObjectClient,
)
from chunked_relay.infrastructure.notifications import LoggingNotifier, TelegramBotNotifier
from chunked_relay.infrastructure.sources import HttpSourceReader

logger = logging.getLogger(__name__)


def build_engine_options(settings: Settings) -> RelayEngineOptions:
    """Translate settings into the engine's explicit configuration."""

    return RelayEngineOptions(
        part_size=settings.part_size_bytes,
        execution_budget_seconds=settings.execution_budget_seconds,
        dispatch_margin_seconds=settings.dispatch_margin_seconds,
        upload_concurrency=settings.upload_concurrency,
        checkpoint_ttl_seconds=settings.checkpoint_ttl_seconds,
        progress_min_interval_seconds=settings.progress_min_interval_seconds,
        progress_every_parts=settings.progress_every_parts,
    )


def _build_checkpoint_store(settings: Settings) -> CheckpointStore:
    if settings.checkpoint_backend == CheckpointBackend.POSTGRES:
        if settings.postgres_dsn is None:
            raise RelayConfigError(
                "CHUNKED_RELAY_POSTGRES_DSN is required when "
                "CHUNKED_RELAY_CHECKPOINT_BACKEND=postgres."
            )
        return PostgresCheckpointStore(
            dsn=settings.postgres_dsn,
            min_pool_size=settings.postgres_pool_min_size,
            max_pool_size=settings.postgres_pool_max_size,
        )
    return InMemoryCheckpointStore()


def _build_big_object_client(settings: Settings) -> BigObjectClient:
    if settings.destination_backend == DestinationBackend.HTTP:
        if settings.destination_endpoint is None:
            raise RelayConfigError(
                "CHUNKED_RELAY_DESTINATION_ENDPOINT is required when "
                "CHUNKED_RELAY_DESTINATION_BACKEND=http."
            )
        return HttpBigObjectClient(
            base_url=settings.destination_endpoint,
            token=settings.destination_token,
            timeout_seconds=settings.destination_timeout_seconds,
        )
    logger.warning("Using the in-memory destination; composed objects are not persisted.")
    return InMemoryBigObjectClient()


def _build_notifier(settings: Settings) -> Notifier:
    if settings.notifier_backend == NotifierBackend.TELEGRAM:
        if settings.telegram_bot_token is None:
            raise RelayConfigError(
                "CHUNKED_RELAY_TELEGRAM_BOT_TOKEN is required when "
                "CHUNKED_RELAY_NOTIFIER_BACKEND=telegram."
            )
        return TelegramBotNotifier(
            bot_token=settings.telegram_bot_token,
            api_base_url=settings.telegram_api_base_url,
            timeout_seconds=settings.telegram_timeout_seconds,
        )
    return LoggingNotifier()


def _build_handoff_dispatcher(
    settings: Settings,
    local_queue: InProcessContinuationQueue,
) -> ContinuationDispatcher:
    if settings.continuation_backend == ContinuationBackend.HTTP:
        if settings.continuation_url is None:
            raise RelayConfigError(
                "CHUNKED_RELAY_CONTINUATION_URL is required when "
                "CHUNKED_RELAY_CONTINUATION_BACKEND=http."
            )
        return HttpContinuationDispatcher(
            base_url=settings.continuation_url,
            timeout_seconds=settings.continuation_timeout_seconds,
        )
    return local_queue


def build_relay_service(settings: Settings) -> RelayService:
    """Compose service graph."""

    checkpoint_store = _build_checkpoint_store(settings)
    notifier = _build_notifier(settings)
    local_queue = InProcessContinuationQueue()
    continuation_trigger = ContinuationTrigger(
        _build_handoff_dispatcher(settings, local_queue),
        max_attempts=settings.continuation_max_attempts,
        retry_base_delay_seconds=settings.continuation_retry_base_delay_seconds,
    )

    engine = RelayEngine(
        options=build_engine_options(settings),
        checkpoint_store=checkpoint_store,
        source_reader=HttpSourceReader(
            timeout_seconds=settings.source_timeout_seconds,
            user_agent=settings.source_user_agent,
            unranged_size_limit_bytes=settings.unranged_size_limit_bytes,
            unknown_size_buffer_limit_bytes=settings.unknown_size_buffer_limit_bytes,
        ),
        client=_build_big_object_client(settings),
        continuation_trigger=continuation_trigger,
        notifier=notifier,
    )

    reaper = None
    if settings.reaper_enabled:
        reaper = StaleSessionReaper(
            checkpoint_store,
            continuation_trigger,
            notifier,
            stale_after_seconds=settings.reaper_stale_after_seconds,
            max_redispatches=settings.reaper_max_redispatches,
            poll_interval_seconds=settings.reaper_poll_seconds,
        )

    return RelayService(
        engine=engine,
        checkpoint_store=checkpoint_store,
        scheduler=local_queue,
        reaper=reaper,
    )


__all__ = ["build_engine_options", "build_relay_service"]
