"""
Order Engine
Centralized Configuration Management

Configuration is loaded from environment variables (and an optional .env file)
through Pydantic settings, grouped into one section per concern.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_", populate_by_name=True)

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="order_engine", alias="POSTGRES_DB", description="Database name")
    user: str = Field(default="orders", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    pool_size: int = Field(default=20, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Max overflow connections")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, description="Full async URL (overrides host/port)")
    create_tables: bool = Field(default=False, description="Create missing tables on startup")

    @property
    def async_url(self) -> str:
        """Async database URL - uses POSTGRES_URL if set, otherwise asyncpg from host/port"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class OrderSettings(BaseSettings):
    """Pricing and order numbering configuration"""

    model_config = SettingsConfigDict(env_prefix="ORDER_")

    # Pricing
    tax_rate: Decimal = Field(default=Decimal("0.19"), description="Tax rate applied to the discounted subtotal")
    shipping_fee: Decimal = Field(default=Decimal("5000"), description="Flat shipping fee per order")
    currency: str = Field(default="COP", description="ISO currency code")
    currency_precision: Decimal = Field(default=Decimal("0.01"), description="Smallest stored currency unit")

    # Order numbers
    number_prefix: str = Field(default="ORD", description="Order number prefix")
    number_suffix_digits: int = Field(default=4, description="Random suffix width")
    number_fallback_suffix_digits: int = Field(default=8, description="Suffix width after repeated collisions")
    number_max_draws: int = Field(default=20, description="Draws per suffix width before widening")
    number_persist_attempts: int = Field(default=5, description="Inserts retried on unique violations")

    @field_validator("tax_rate", "shipping_fee")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        """Rates and fees cannot be negative"""
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator(
        "number_suffix_digits",
        "number_fallback_suffix_digits",
        "number_max_draws",
        "number_persist_attempts",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class SecuritySettings(BaseSettings):
    """HTTP boundary configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="order-engine", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")
    api_workers: int = Field(default=4, alias="API_WORKERS", description="API workers")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    orders: OrderSettings = Field(default_factory=OrderSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
