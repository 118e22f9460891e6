"""
Application configuration module.
Loads configuration from environment variables and provides validation.
"""

import json
from decimal import Decimal
from functools import lru_cache
from typing import List, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application Settings
    app_name: str = Field(default="Qred Ledger API")
    app_version: str = Field(default="0.1.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./qred.db")
    database_pool_size: int = Field(default=10)
    database_max_overflow: int = Field(default=20)

    # Security Settings
    jwt_secret_key: str
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=30)

    # CORS Settings
    cors_origins: List[str] = Field(default_factory=list)
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: List[str] = Field(default_factory=lambda: ["*"])
    cors_allow_headers: List[str] = Field(default_factory=lambda: ["*"])

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # Ledger Settings
    currency_symbol: str = Field(default="₦")
    phone_country_code: str = Field(default="+234")
    max_debt_amount: Decimal = Field(default=Decimal("10000000"), gt=0)
    max_notes_length: int = Field(default=500)
    timezone: str = Field(default="Africa/Lagos")
    recent_debts_limit: int = Field(default=5, ge=0)

    # Retry Settings
    payment_conflict_retries: int = Field(default=3, ge=1)
    transient_retry_attempts: int = Field(default=3, ge=1)
    transient_retry_base_delay: float = Field(default=0.2, ge=0)

    @field_validator(
        "cors_origins", "cors_allow_methods", "cors_allow_headers", mode="before"
    )
    def parse_list_fields(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse list fields from a JSON string, a bare string or a list."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [v]
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.environment == "test"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()


# Create a global settings instance
settings = get_settings()
