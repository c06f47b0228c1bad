"""Application settings."""

from enum import StrEnum

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_MAX_PART_SIZE_KIB = 512


class CheckpointBackend(StrEnum):
    """Available persistence adapters for relay checkpoints."""

    IN_MEMORY = "in_memory"
    POSTGRES = "postgres"


class DestinationBackend(StrEnum):
    """Available big-object upload adapters."""

    IN_MEMORY = "in_memory"
    HTTP = "http"


class ContinuationBackend(StrEnum):
    """How one invocation hands off to the next."""

    IN_PROCESS = "in_process"
    HTTP = "http"


class NotifierBackend(StrEnum):
    """Available notification channels."""

    LOGGING = "logging"
    TELEGRAM = "telegram"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Chunked Relay"
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 8080

    part_size_kib: int = 512
    execution_budget_seconds: float = 80.0
    dispatch_margin_seconds: float = 5.0
    upload_concurrency: int = 1
    checkpoint_ttl_seconds: int = 86400
    unknown_size_buffer_limit_mb: int = 50
    unranged_size_limit_mb: int = 50

    source_timeout_seconds: float = 30.0
    source_user_agent: str = "Mozilla/5.0"

    checkpoint_backend: CheckpointBackend = CheckpointBackend.IN_MEMORY
    postgres_dsn: str | None = None
    postgres_pool_min_size: int = 1
    postgres_pool_max_size: int = 10

    destination_backend: DestinationBackend = DestinationBackend.IN_MEMORY
    destination_endpoint: str | None = None
    destination_token: str | None = None
    destination_timeout_seconds: float = 30.0

    continuation_backend: ContinuationBackend = ContinuationBackend.IN_PROCESS
    continuation_url: str | None = None
    continuation_timeout_seconds: float = 10.0
    continuation_max_attempts: int = 3
    continuation_retry_base_delay_seconds: float = 0.5

    notifier_backend: NotifierBackend = NotifierBackend.LOGGING
    telegram_bot_token: str | None = None
    telegram_api_base_url: str = "https://api.telegram.org"
    telegram_timeout_seconds: float = 10.0

    progress_min_interval_seconds: float = 5.0
    progress_every_parts: int = 20

    reaper_enabled: bool = True
    reaper_poll_seconds: float = 60.0
    reaper_stale_after_seconds: float = 300.0
    reaper_max_redispatches: int = 3

    @property
    def part_size_bytes(self) -> int:
        return self.part_size_kib * 1024

    @property
    def unknown_size_buffer_limit_bytes(self) -> int:
        return self.unknown_size_buffer_limit_mb * 1024 * 1024

    @property
    def unranged_size_limit_bytes(self) -> int:
        return self.unranged_size_limit_mb * 1024 * 1024

    @model_validator(mode="after")
    def validate_relay_settings(self) -> "Settings":
        """Ensure backend-specific and budget settings are valid."""

        part_size = self.part_size_kib
        if part_size < 1 or part_size > _MAX_PART_SIZE_KIB or part_size & (part_size - 1):
            raise ValueError(
                "CHUNKED_RELAY_PART_SIZE_KIB must be a power of two between 1 and 512."
            )
        if self.execution_budget_seconds <= 0:
            raise ValueError("CHUNKED_RELAY_EXECUTION_BUDGET_SECONDS must be > 0.")
        if self.dispatch_margin_seconds < 0:
            raise ValueError("CHUNKED_RELAY_DISPATCH_MARGIN_SECONDS must be >= 0.")
        if self.dispatch_margin_seconds >= self.execution_budget_seconds:
            raise ValueError(
                "CHUNKED_RELAY_DISPATCH_MARGIN_SECONDS must be < "
                "CHUNKED_RELAY_EXECUTION_BUDGET_SECONDS."
            )
        if not 1 <= self.upload_concurrency <= 8:
            raise ValueError("CHUNKED_RELAY_UPLOAD_CONCURRENCY must be between 1 and 8.")
        if self.checkpoint_ttl_seconds < 1:
            raise ValueError("CHUNKED_RELAY_CHECKPOINT_TTL_SECONDS must be >= 1.")
        if self.unknown_size_buffer_limit_mb < 1:
            raise ValueError("CHUNKED_RELAY_UNKNOWN_SIZE_BUFFER_LIMIT_MB must be >= 1.")
        if self.unranged_size_limit_mb < 1:
            raise ValueError("CHUNKED_RELAY_UNRANGED_SIZE_LIMIT_MB must be >= 1.")
        if self.checkpoint_backend == CheckpointBackend.POSTGRES and not self.postgres_dsn:
            raise ValueError(
                "CHUNKED_RELAY_POSTGRES_DSN is required when "
                "CHUNKED_RELAY_CHECKPOINT_BACKEND=postgres."
            )
        if self.postgres_pool_min_size < 1:
            raise ValueError("CHUNKED_RELAY_POSTGRES_POOL_MIN_SIZE must be >= 1.")
        if self.postgres_pool_max_size < self.postgres_pool_min_size:
            raise ValueError(
                "CHUNKED_RELAY_POSTGRES_POOL_MAX_SIZE must be >= "
                "CHUNKED_RELAY_POSTGRES_POOL_MIN_SIZE."
            )
        if self.destination_backend == DestinationBackend.HTTP and not self.destination_endpoint:
            raise ValueError(
                "CHUNKED_RELAY_DESTINATION_ENDPOINT is required when "
                "CHUNKED_RELAY_DESTINATION_BACKEND=http."
            )
        if self.continuation_backend == ContinuationBackend.HTTP and not self.continuation_url:
            raise ValueError(
                "CHUNKED_RELAY_CONTINUATION_URL is required when "
                "CHUNKED_RELAY_CONTINUATION_BACKEND=http."
            )
        if self.continuation_max_attempts < 1:
            raise ValueError("CHUNKED_RELAY_CONTINUATION_MAX_ATTEMPTS must be >= 1.")
        if self.notifier_backend == NotifierBackend.TELEGRAM and not self.telegram_bot_token:
            raise ValueError(
                "CHUNKED_RELAY_TELEGRAM_BOT_TOKEN is required when "
                "CHUNKED_RELAY_NOTIFIER_BACKEND=telegram."
            )
        if self.progress_every_parts < 1:
            raise ValueError("CHUNKED_RELAY_PROGRESS_EVERY_PARTS must be >= 1.")
        if self.reaper_poll_seconds <= 0:
            raise ValueError("CHUNKED_RELAY_REAPER_POLL_SECONDS must be > 0.")
        if self.reaper_stale_after_seconds <= self.execution_budget_seconds:
            raise ValueError(
                "CHUNKED_RELAY_REAPER_STALE_AFTER_SECONDS must be > "
                "CHUNKED_RELAY_EXECUTION_BUDGET_SECONDS."
            )
        return self

    model_config = SettingsConfigDict(env_prefix="CHUNKED_RELAY_", extra="ignore")


__all__ = [
    "CheckpointBackend",
    "ContinuationBackend",
    "DestinationBackend",
    "NotifierBackend",
    "Settings",
]
