# src/files_manager/settings.py
from typing import Optional, Tuple
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from files_manager.settings import get_settings
        settings = get_settings()
        storage_dir = settings.storage_dir
    """

    # Application Settings
    app_name: str = Field(
        default="files-manager",
        description="Application name"
    )

    # Deployment Mode
    deployment_mode: str = Field(
        default="local-dev",
        description="Deployment mode: local-dev, aws-mock, or aws-prod"
    )

    # Database Configuration
    database_backend: str = Field(
        default="sqlite",
        description="Document store backend: sqlite or mongo"
    )

    db_path: str = Field(
        default="files_manager.db",
        description="SQLite document database file"
    )

    mongodb_uri: Optional[str] = Field(
        default=None,
        alias="MONGODB_URI",
        description="MongoDB connection string, e.g. mongodb://localhost:27017/files_manager"
    )

    # Storage Configuration
    storage_dir: str = Field(
        default="/tmp/files_manager",
        alias="FOLDER_PATH",
        description="Root directory for stored blobs, created on first use"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    # S3 Configuration
    s3_bucket_name: str = Field(
        default="files-manager-storage",
        description="S3 bucket for blobs in aws modes"
    )

    s3_prefix: str = Field(
        default="files",
        description="Key prefix for blobs in the bucket"
    )

    # SQS Configuration
    sqs_queue_url: Optional[str] = Field(
        default=None,
        alias="SQS_QUEUE_URL",
        description="Thumbnail job queue URL"
    )

    sqs_dead_letter_queue_url: Optional[str] = Field(
        default=None,
        alias="SQS_DEAD_LETTER_QUEUE_URL",
        description="Queue receiving permanently failed thumbnail jobs"
    )

    # Local queue Configuration
    queue_dir: str = Field(
        default="queue_data",
        description="Root directory of the local file-system queue"
    )

    queue_max_depth: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of pending thumbnail jobs"
    )

    queue_visibility_timeout_seconds: int = Field(
        default=300,
        ge=1,
        description="Time a claimed job stays invisible before it can be redelivered"
    )

    # Sessions
    session_ttl_seconds: int = Field(
        default=24 * 60 * 60,
        ge=1,
        description="Lifetime of an authentication token"
    )

    # Files
    files_page_size: int = Field(
        default=20,
        description="Items per page when listing files"
    )

    # Thumbnails
    thumbnail_widths: Tuple[int, ...] = Field(
        default=(100, 250, 500),
        description="Widths of the derived renditions"
    )

    thumbnail_job_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Deadline for generating all renditions of one job"
    )

    thumbnail_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Deliveries before a job is dead-lettered"
    )

    # Worker
    worker_concurrency: int = Field(
        default=1,
        ge=1,
        description="Concurrent job loops per worker process"
    )

    worker_poll_interval_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Sleep between polls when the queue is empty"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('deployment_mode')
    def validate_deployment_mode(cls, v):
        """Validate deployment mode is one of the allowed values."""
        valid_modes = ["local-dev", "aws-mock", "aws-prod"]
        if v not in valid_modes:
            raise ValueError(f"Invalid deployment_mode: {v}. Must be one of {valid_modes}")
        return v

    @field_validator('database_backend')
    def validate_database_backend(cls, v):
        """Validate database backend is one of the allowed values."""
        valid_backends = ["sqlite", "mongo"]
        if v not in valid_backends:
            raise ValueError(f"Invalid database_backend: {v}. Must be one of {valid_backends}")
        return v

    @property
    def uses_aws(self) -> bool:
        return self.deployment_mode in ["aws-mock", "aws-prod"]

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
