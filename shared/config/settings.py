"""
Settings Module
===============

Pydantic-based configuration with environment variable loading.

Version: 0.1.0
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackend(str, Enum):
    """Claim storage backend."""

    MEMORY = "memory"
    POSTGRES = "postgres"


class PostgresSettings(BaseSettings):
    """PostgreSQL database configuration."""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = "localhost"
    port: int = 5432
    user: str = "canvango"
    password: SecretStr = SecretStr("canvango_dev_password")
    db: str = "canvango"

    @property
    def async_url(self) -> str:
        """Generate async SQLAlchemy connection URL."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.db}"


class RedisSettings(BaseSettings):
    """Redis cache configuration."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("canvango_redis_password")
    db: int = 0

    @property
    def url(self) -> str:
        """Generate Redis connection URL."""
        pwd = self.password.get_secret_value()
        return f"redis://:{pwd}@{self.host}:{self.port}/{self.db}"


class KafkaSettings(BaseSettings):
    """Kafka event streaming configuration."""

    model_config = SettingsConfigDict(env_prefix="KAFKA_")

    bootstrap_servers: str = "localhost:9092"
    security_protocol: str = "PLAINTEXT"


class JWTSettings(BaseSettings):
    """JWT authentication configuration."""

    model_config = SettingsConfigDict(env_prefix="JWT_")

    secret_key: SecretStr = SecretStr("your-jwt-secret-key-min-32-chars-long")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30


class CORSSettings(BaseSettings):
    """CORS configuration."""

    model_config = SettingsConfigDict(env_prefix="CORS_")

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into list."""
        return [o.strip() for o in self.origins.split(",") if o.strip()]


class WarrantySettings(BaseSettings):
    """Warranty claim service configuration."""

    model_config = SettingsConfigDict(env_prefix="WARRANTY_")

    port: int = 8010
    storage_backend: StorageBackend = StorageBackend.MEMORY

    # Read-view cache (Redis)
    cache_enabled: bool = False
    cache_ttl_seconds: int = 300

    # Event forwarding (Kafka)
    kafka_forwarding: bool = False
    claims_topic: str = "canvango.warranty.claims"

    # Pending events per realtime socket before new ones are dropped
    realtime_queue_size: int = 100

    # Submission rules
    reason_min_length: int = 10
    reason_max_length: int = 500
    max_evidence_files: int = 3
    max_evidence_bytes: int = 5 * 1024 * 1024
    allowed_evidence_types: list[str] = Field(
        default_factory=lambda: [
            "image/jpeg",
            "image/jpg",
            "image/png",
            "image/gif",
            "image/webp",
        ]
    )

    # Evidence storage
    evidence_dir: Path = Path("./uploads/warranty-evidence")
    evidence_base_url: str = "http://localhost:8010/evidence"
    evidence_url_ttl_seconds: int = 3600

    # Transport failures on read paths
    transport_retries: int = 3

    # Admin listing
    default_page_size: int = 10
    max_page_size: int = 100


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables with sensible defaults.
    Use the global `settings` singleton or call `get_settings()`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # General
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True
    log_level: LogLevel = LogLevel.INFO
    secret_key: SecretStr = SecretStr("your-super-secret-key-change-in-production")

    # Project paths
    project_root: Path = Field(default_factory=lambda: Path(__file__).parent.parent.parent)

    # Data stores
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)

    # Authentication
    jwt: JWTSettings = Field(default_factory=JWTSettings)

    # Security
    cors: CORSSettings = Field(default_factory=CORSSettings)

    # Warranty claims
    warranty: WarrantySettings = Field(default_factory=WarrantySettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Ensure log level is uppercase."""
        if isinstance(v, str):
            return LogLevel(v.upper())
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.environment == Environment.TESTING


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings singleton.
    """
    return Settings()
