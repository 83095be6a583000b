"""Application settings and configuration.

This module defines all configuration options for the status sync worker.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SUPPORTED_MEDIA_TYPES = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/heic",
    "image/heif",
    "image/avif",
    "video/webm",
    "video/mp4",
    "video/quicktime",
    "video/ogg",
    "audio/wave",
    "audio/wav",
    "audio/x-wav",
    "audio/x-pn-wave",
    "audio/vnd.wave",
    "audio/ogg",
    "audio/vorbis",
    "audio/mpeg",
    "audio/mp3",
    "audio/webm",
    "audio/flac",
    "audio/aac",
    "audio/m4a",
    "audio/x-m4a",
    "audio/mp4",
    "audio/3gpp",
    "video/x-ms-asf",
]


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Values can be overridden via environment variables or a ``.env`` file in
    the working directory.
    """

    app_name: str = Field(default="Status Sync", alias="APP_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./status_sync.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis backs both the per-status lease lock and the job queue
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    lock_lease_seconds: int = Field(default=15 * 60, alias="LOCK_LEASE_SECONDS")
    job_queue_prefix: str = Field(default="jobs", alias="JOB_QUEUE_PREFIX")

    # Merge limits
    max_media_attachments: int = Field(default=5, alias="MAX_MEDIA_ATTACHMENTS")
    supported_media_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SUPPORTED_MEDIA_TYPES),
        alias="SUPPORTED_MEDIA_TYPES",
    )

    # Link preview refresh is spread out to avoid hammering the linked site
    link_crawl_delay_min_seconds: int = Field(default=1, alias="LINK_CRAWL_DELAY_MIN_SECONDS")
    link_crawl_delay_max_seconds: int = Field(default=59, alias="LINK_CRAWL_DELAY_MAX_SECONDS")

    # Remote account fetch runs inside the critical section and must stay bounded
    remote_fetch_timeout_seconds: float = Field(
        default=10.0,
        alias="REMOTE_FETCH_TIMEOUT_SECONDS",
    )
    user_agent: str = Field(default="status-sync/0.1.0", alias="USER_AGENT")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def link_crawl_delay_range(self) -> tuple[int, int]:
        """Return the inclusive (min, max) delay range for link preview refreshes."""
        low = max(0, self.link_crawl_delay_min_seconds)
        high = max(low, self.link_crawl_delay_max_seconds)
        return low, high


settings = Settings()
