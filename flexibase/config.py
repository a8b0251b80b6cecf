"""
Configuration management for FlexiBase.

All configuration is done via environment variables. This module provides
typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local, offline use
    - Remote sync is opt-in and requires a bucket
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = "~/.flexibase/flexibase.json"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_path: Path of the local JSON document
    """

    data_path: str = DEFAULT_DATA_PATH

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(data_path=os.getenv("FLEXIBASE_DATA_PATH", DEFAULT_DATA_PATH))


@dataclass(frozen=True)
class S3Config:
    """S3 configuration for the remote blob backend.

    Attributes:
        bucket: S3 bucket name
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO and other S3-compatible services)
        prefix: Key prefix documents are stored under
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    bucket: str = ""
    region: str = "us-east-1"
    endpoint_url: str | None = None
    prefix: str = "flexibase"
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET", ""),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            prefix=os.getenv("S3_PREFIX", "flexibase"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )


@dataclass(frozen=True)
class SyncConfig:
    """Sync engine configuration.

    Attributes:
        remote_enabled: Whether to replicate the document to S3
        debounce_seconds: Window in which enqueued syncs collapse into one push
        auto_sync_interval_seconds: Periodic full sync interval (0 disables)
        blob_name: Name the document is uploaded under
        blob_id: Known remote blob identifier to pull from on first sync
    """

    remote_enabled: bool = False
    debounce_seconds: float = 2.0
    auto_sync_interval_seconds: float = 0.0
    blob_name: str = "flexibase.json"
    blob_id: str | None = None

    @classmethod
    def from_env(cls) -> SyncConfig:
        """Load configuration from environment variables."""
        return cls(
            remote_enabled=_env_bool("SYNC_REMOTE_ENABLED", "false"),
            debounce_seconds=float(os.getenv("SYNC_DEBOUNCE_SECONDS", "2.0")),
            auto_sync_interval_seconds=float(os.getenv("SYNC_AUTO_INTERVAL_SECONDS", "0")),
            blob_name=os.getenv("SYNC_BLOB_NAME", "flexibase.json"),
            blob_id=os.getenv("SYNC_BLOB_ID"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class AppConfig:
    """Complete FlexiBase configuration.

    Attributes:
        storage: Local storage configuration
        s3: S3 configuration (used when sync.remote_enabled)
        sync: Sync engine configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    s3: S3Config = field(default_factory=S3Config)
    sync: SyncConfig = field(default_factory=SyncConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid
        """
        config = cls(
            storage=StorageConfig.from_env(),
            s3=S3Config.from_env(),
            sync=SyncConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.sync.remote_enabled and not self.s3.bucket:
            raise ValueError("S3_BUCKET is required when SYNC_REMOTE_ENABLED=true")
        if self.sync.debounce_seconds < 0:
            raise ValueError("SYNC_DEBOUNCE_SECONDS must not be negative")
        if self.sync.auto_sync_interval_seconds < 0:
            raise ValueError("SYNC_AUTO_INTERVAL_SECONDS must not be negative")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Configuration loaded",
            extra={
                "data_path": self.storage.data_path,
                "remote_enabled": self.sync.remote_enabled,
                "s3_bucket": self.s3.bucket if self.sync.remote_enabled else None,
                "s3_endpoint": self.s3.endpoint_url if self.sync.remote_enabled else None,
                "debounce_seconds": self.sync.debounce_seconds,
                "auto_sync_interval_seconds": self.sync.auto_sync_interval_seconds,
                "log_level": self.observability.log_level,
            },
        )
