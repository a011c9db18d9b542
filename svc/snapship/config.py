"""
Configuration management for the snapship service.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set explicit values for critical settings
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class StorageBackend(Enum):
    """Supported upload destinations."""

    S3 = "s3"
    MEMORY = "memory"


@dataclass(frozen=True)
class UploadConfig:
    """Uploader configuration.

    Attributes:
        enabled: Whether uploads start enabled
        interval_seconds: Interval between upload attempts
        compress: Whether snapshots are gzipped before upload
        backend: Storage backend to upload to
        staging_dir: Directory for temporary files (system temp if None)
    """

    enabled: bool = True
    interval_seconds: float = 30.0
    compress: bool = True
    backend: StorageBackend = StorageBackend.S3
    staging_dir: str | None = None

    @classmethod
    def from_env(cls) -> UploadConfig:
        """Load configuration from environment variables."""
        backend_str = os.getenv("UPLOAD_BACKEND", "s3").lower()
        try:
            backend = StorageBackend(backend_str)
        except ValueError:
            raise ValueError(f"Invalid UPLOAD_BACKEND '{backend_str}'. Must be one of: s3, memory")

        return cls(
            enabled=os.getenv("UPLOAD_ENABLED", "true").lower() == "true",
            interval_seconds=float(os.getenv("UPLOAD_INTERVAL_SECONDS", "30")),
            compress=os.getenv("UPLOAD_COMPRESS", "true").lower() == "true",
            backend=backend,
            staging_dir=os.getenv("UPLOAD_STAGING_DIR"),
        )


@dataclass(frozen=True)
class S3Config:
    """S3 configuration for uploads.

    Attributes:
        bucket: S3 bucket name
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        key: Object key snapshots are written to
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    bucket: str = "snapship-storage"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    key: str = "snapshots/latest.sqlite"
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET", "snapship-storage"),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            key=os.getenv("S3_KEY", "snapshots/latest.sqlite"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )


@dataclass(frozen=True)
class SourceConfig:
    """Snapshot source configuration.

    Attributes:
        db_path: SQLite database to snapshot
    """

    db_path: str = ""

    @classmethod
    def from_env(cls) -> SourceConfig:
        """Load configuration from environment variables."""
        return cls(db_path=os.getenv("SOURCE_DB_PATH", ""))


@dataclass(frozen=True)
class HttpConfig:
    """Status HTTP server configuration.

    Attributes:
        enabled: Whether to serve the status API
        bind_address: Address to bind (host:port)
    """

    enabled: bool = True
    bind_address: str = "0.0.0.0:8081"

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        return cls(
            enabled=os.getenv("HTTP_ENABLED", "true").lower() == "true",
            bind_address=os.getenv("HTTP_BIND", "0.0.0.0:8081"),
        )

    @property
    def host(self) -> str:
        return self.bind_address.rsplit(":", 1)[0]

    @property
    def port(self) -> int:
        return int(self.bind_address.rsplit(":", 1)[1])


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete service configuration.

    Attributes:
        upload: Uploader configuration
        s3: S3 configuration (if upload.backend is S3)
        source: Snapshot source configuration
        http: Status HTTP server configuration
        observability: Logging configuration
    """

    upload: UploadConfig = field(default_factory=UploadConfig)
    s3: S3Config = field(default_factory=S3Config)
    source: SourceConfig = field(default_factory=SourceConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            upload=UploadConfig.from_env(),
            s3=S3Config.from_env(),
            source=SourceConfig.from_env(),
            http=HttpConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.upload.interval_seconds <= 0:
            raise ValueError("UPLOAD_INTERVAL_SECONDS must be positive")

        if self.upload.backend == StorageBackend.S3:
            if not self.s3.bucket:
                raise ValueError("S3_BUCKET is required when UPLOAD_BACKEND=s3")
            if not self.s3.key:
                raise ValueError("S3_KEY is required when UPLOAD_BACKEND=s3")

        if not self.source.db_path:
            raise ValueError("SOURCE_DB_PATH is required")

        if ":" not in self.http.bind_address:
            raise ValueError(f"HTTP_BIND must be host:port, got '{self.http.bind_address}'")
        try:
            port = self.http.port
        except ValueError:
            raise ValueError(
                f"HTTP_BIND port must be an integer, got '{self.http.bind_address}'"
            ) from None
        if not 1 <= port <= 65535:
            raise ValueError(f"HTTP_BIND port must be in 1-65535, got {port}")

        if not os.path.exists(self.source.db_path):
            logger.warning(
                f"Source database does not exist: {self.source.db_path}. "
                "Uploads will fail until it is created."
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "upload_enabled": self.upload.enabled,
                "upload_interval_seconds": self.upload.interval_seconds,
                "upload_compress": self.upload.compress,
                "upload_backend": self.upload.backend.value,
                "s3_bucket": self.s3.bucket
                if self.upload.backend == StorageBackend.S3
                else None,
                "s3_key": self.s3.key if self.upload.backend == StorageBackend.S3 else None,
                "source_db_path": self.source.db_path,
                "http_bind": self.http.bind_address if self.http.enabled else None,
                "log_level": self.observability.log_level,
            },
        )
