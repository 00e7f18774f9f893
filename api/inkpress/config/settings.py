"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="inkpress", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )

    # Authentication
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        description="JWT signing key (min 32 chars)",
    )
    auth_algorithm: str = Field(default="HS256", description="JWT algorithm")
    auth_access_token_expire_minutes: int = Field(
        default=60 * 24, description="Session token lifetime (minutes)"
    )
    privileged_signup_key: str | None = Field(
        default=None,
        description="Key required to sign up directly as admin or super_admin",
    )

    # Document store
    store_backend: Literal["memory", "cassandra"] = Field(
        default="memory", description="Document store backend"
    )
    store_timeout_seconds: float = Field(
        default=5.0, description="Timeout for a single store operation"
    )
    store_max_retries: int = Field(
        default=2, description="Retries for idempotent store operations on timeout"
    )
    store_retry_backoff_seconds: float = Field(
        default=0.05, description="Base backoff between store retries"
    )
    store_cas_attempts: int = Field(
        default=16, description="Compare-and-set attempts before giving up"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(default="inkpress", description="Keyspace")
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )

    # Content
    comments_auto_approve: bool = Field(
        default=True, description="New comments start approved instead of pending"
    )
    reconcile_interval_seconds: int = Field(
        default=3600, description="Counter reconciliation interval (0 disables)"
    )

    # Uploads
    upload_dir: str = Field(default="uploads", description="Upload root directory")
    upload_max_file_size_mb: int = Field(
        default=5, description="Maximum file size for uploads in MB"
    )
    upload_max_files_per_request: int = Field(
        default=5, description="Maximum files in a single upload request"
    )
    upload_allowed_image_types: list[str] = Field(
        default=["image/jpeg", "image/png", "image/gif", "image/webp"],
        description="Allowed image MIME types",
    )

    # AI text generation
    ai_api_url: str | None = Field(default=None, description="Text generation URL")
    ai_api_key: str | None = Field(default=None, description="Text generation key")
    ai_model: str = Field(default="gemini-1.5-flash", description="Model name")
    ai_timeout_seconds: float = Field(default=30.0, description="Request timeout")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_to_file: bool = Field(default=True, description="Write rotating log files")
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"

    @property
    def ai_configured(self) -> bool:
        """Check if the text generation collaborator is configured."""
        return bool(self.ai_api_url)

    @property
    def upload_max_file_size_bytes(self) -> int:
        return self.upload_max_file_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
