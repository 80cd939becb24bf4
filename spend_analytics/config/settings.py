"""
Car-Wash Spend Analytics
Configuration

Environment-driven settings, one section per concern. Every section reads
its own prefixed variables (POSTGRES_*, CACHE_*, REPORT_*, REDIS_*) and the
root Settings also reads a local .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class DatabaseSettings(BaseSettings):
    """Hosted Postgres holding the invoices and invoice_lines tables"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Store host")
    port: int = Field(default=5432, description="Store port")
    db: str = Field(default="carwash", description="Database name")
    user: str = Field(default="postgres", description="Read-only role")
    password: SecretStr = Field(default="postgres", description="Role password")
    echo: bool = Field(default=False, description="Log every SQL statement")
    url: Optional[str] = Field(default=None, description="Full SQLAlchemy async URL; wins over the parts above")

    @property
    def async_url(self) -> str:
        if self.url:
            return self.url
        return URL.create(
            "postgresql+asyncpg",
            username=self.user,
            password=self.password.get_secret_value(),
            host=self.host,
            port=self.port,
            database=self.db,
        ).render_as_string(hide_password=False)


class RedisSettings(BaseSettings):
    """Redis connection for CACHE_BACKEND=redis"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    max_connections: int = Field(default=20, description="Connection pool size")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")


class CacheSettings(BaseSettings):
    """Option list cache and retries of cached queries"""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    backend: str = Field(default="memory", description="memory (per process) or redis (shared)")
    ttl_seconds: float = Field(default=300.0, gt=0, description="Entry lifetime")
    max_retries: int = Field(default=3, ge=1, description="Attempts per cached query")
    retry_delay_seconds: float = Field(default=1.0, ge=0, description="Backoff base; doubles per attempt")
    namespace: str = Field(default="spend", description="Redis key prefix")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        backend = v.strip().lower()
        if backend not in ("memory", "redis"):
            raise ValueError(f"Unknown cache backend {v!r}; expected memory or redis")
        return backend


class ReportSettings(BaseSettings):
    """Report sizing"""

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    line_batch_size: int = Field(default=100, ge=1, description="Invoice ids per invoice_lines IN list")
    top_skus_limit: int = Field(default=100, ge=1, description="Top SKUs returned without a limit")
    most_expensive_limit: int = Field(default=20, ge=1, description="Most expensive invoices returned")


class SecuritySettings(BaseSettings):
    """Browser access"""

    model_config = SettingsConfigDict(env_prefix="")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        alias="CORS_ORIGINS",
        description="Dashboard origins allowed to call the API",
    )


class MonitoringSettings(BaseSettings):
    """structlog output"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="json or text")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.strip().lower()
        if fmt not in ("json", "text"):
            raise ValueError(f"Unknown log format {v!r}; expected json or text")
        return fmt


class Settings(BaseSettings):
    """
    Root settings.

    Sections are built from their own environment variables; the root
    itself only carries application identity and environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="spend-analytics", alias="APP_NAME")
    app_env: str = Field(default="development", alias="APP_ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    version: str = Field(default="1.0.0")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    reports: ReportSettings = Field(default_factory=ReportSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        env = v.strip().lower()
        if env not in ("development", "staging", "production", "testing"):
            raise ValueError(f"Unknown APP_ENV {v!r}")
        return env

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """Settings loaded once per process."""
    return Settings()
