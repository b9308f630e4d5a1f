import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = ["AppConfig", "ConfigurationError", "get_config"]


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration loaded from environment variables."""

    # --- Required Variables ---
    service_name: str
    environment: str
    photo_bucket: str
    archive_bucket: str
    events_table: str
    photos_table: str
    archives_table: str

    # --- Optional Variables with Defaults ---
    photos_event_index: str
    size_budget_mb: float
    page_size: int
    log_level: str
    kms_key_id: str | None
    archive_name_max_length: int
    presigned_url_ttl_seconds: int
    timeout_guard_threshold_seconds: int
    delete_orphaned_archives: bool

    # --- Derived Properties ---
    @property
    def timeout_guard_threshold_ms(self) -> int:
        return self.timeout_guard_threshold_seconds * 1000

    @classmethod
    def load_from_env(cls) -> "AppConfig":
        """
        Loads configuration from environment variables, performing validation and type casting.
        Fails fast with a ConfigurationError if anything is invalid.
        """
        try:
            # --- Handle required string variables ---
            service_name = os.environ["SERVICE_NAME"]
            environment = os.environ["ENVIRONMENT"]
            photo_bucket = os.environ["PHOTO_BUCKET_NAME"]
            archive_bucket = os.environ["ARCHIVE_BUCKET_NAME"]
            events_table = os.environ["EVENTS_TABLE_NAME"]
            photos_table = os.environ["PHOTOS_TABLE_NAME"]
            archives_table = os.environ["ARCHIVES_TABLE_NAME"]

            photos_event_index = os.getenv(
                "PHOTOS_EVENT_INDEX", "event_id-created_at-index"
            )

            # --- Handle optional and numeric variables with validation ---
            size_budget_mb = float(os.getenv("SIZE_BUDGET_MB", "2048"))
            if size_budget_mb <= 0:
                raise ValueError("SIZE_BUDGET_MB must be a positive number.")

            page_size = int(os.getenv("PAGE_SIZE", "100"))
            if not 1 <= page_size <= 1000:
                raise ValueError("PAGE_SIZE must be between 1 and 1000.")

            archive_name_max_length = int(os.getenv("ARCHIVE_NAME_MAX_LENGTH", "64"))
            if archive_name_max_length <= 0:
                raise ValueError("ARCHIVE_NAME_MAX_LENGTH must be a positive integer.")

            presigned_url_ttl_seconds = int(
                os.getenv("PRESIGNED_URL_TTL_SECONDS", "3600")
            )
            if not 1 <= presigned_url_ttl_seconds <= 604_800:
                raise ValueError(
                    "PRESIGNED_URL_TTL_SECONDS must be between 1 and 604800."
                )

            timeout_guard_threshold_seconds = int(
                os.getenv("TIMEOUT_GUARD_THRESHOLD_SECONDS", "10")
            )
            if timeout_guard_threshold_seconds < 0:
                raise ValueError(
                    "TIMEOUT_GUARD_THRESHOLD_SECONDS must be a non-negative integer."
                )

            # --- Handle special-case variables like log level ---
            log_level = os.getenv("LOG_LEVEL", "INFO").upper()
            allowed_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if log_level not in allowed_log_levels:
                raise ValueError(
                    f"LOG_LEVEL must be one of {allowed_log_levels}, not '{log_level}'"
                )

            kms_key_id = os.getenv("KMS_KEY_ID") or None
            delete_orphaned_archives = _parse_bool(
                os.getenv("DELETE_ORPHANED_ARCHIVES", "true")
            )

        except KeyError as e:
            raise ConfigurationError(
                f"Missing required environment variable: {e.args[0]}"
            ) from e
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid value for an environment variable: {e}"
            ) from e

        return cls(
            service_name=service_name,
            environment=environment,
            photo_bucket=photo_bucket,
            archive_bucket=archive_bucket,
            events_table=events_table,
            photos_table=photos_table,
            archives_table=archives_table,
            photos_event_index=photos_event_index,
            size_budget_mb=size_budget_mb,
            page_size=page_size,
            log_level=log_level,
            kms_key_id=kms_key_id,
            archive_name_max_length=archive_name_max_length,
            presigned_url_ttl_seconds=presigned_url_ttl_seconds,
            timeout_guard_threshold_seconds=timeout_guard_threshold_seconds,
            delete_orphaned_archives=delete_orphaned_archives,
        )


# --- Singleton Factory Function (Lazy-loaded and Cached) ---
@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """
    Loads the application configuration from environment variables.
    The result is cached using lru_cache, so the environment is only read once
    on the first call. This avoids import-time side effects.
    """
    logger.info("Loading application configuration from environment...")
    return AppConfig.load_from_env()
