"""Application settings and configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Ledger storage
    ledger_backend: str = "memory"  # memory, database
    database_url: Optional[str] = None
    sqlite_path: str = "./consenthub.db"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # API
    api_port: int = 8000
    api_host: str = "0.0.0.0"
    secret_key: str = "dev-secret-key-change-in-production"
    environment: str = "development"

    # API keys (raw keys are only accepted from the environment)
    api_keys: list[str] = ["dev-consent-key-12345"]
    admin_api_keys: list[str] = ["dev-admin-key-12345"]

    # Policy documents
    default_policy_version: str = "1.0"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_requests_per_minute: int = 100
    rate_limit_ttl_seconds: int = 600

    # Idempotency
    idempotency_enabled: bool = True
    idempotency_ttl_seconds: int = 86400

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not explicitly set."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.sqlite_path}"

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    def validate_production_settings(self):
        """Validate settings for production environment."""
        env = self.environment.lower()
        if env not in ("development", "test", "dev"):
            if self.secret_key.startswith("dev-"):
                raise ValueError(
                    "SECRET_KEY must be set in production. "
                    "Do not use the development default."
                )
            if any(key.startswith("dev-") for key in self.api_keys + self.admin_api_keys):
                raise ValueError(
                    "API_KEYS and ADMIN_API_KEYS must not contain development keys in production."
                )
            if self.ledger_backend == "memory":
                raise ValueError(
                    "LEDGER_BACKEND=memory is not allowed in production. "
                    "Use LEDGER_BACKEND=database."
                )
        if self.ledger_backend not in ("memory", "database"):
            raise ValueError(f"Unknown LEDGER_BACKEND: {self.ledger_backend}")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
