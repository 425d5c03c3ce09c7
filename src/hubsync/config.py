"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class ConfigurationError(RuntimeError):
    """A required setting is missing or invalid."""


def parse_id_list(raw: str | None) -> list[int]:
    """Parse a comma-separated id list, dropping blanks and non-numeric tokens."""
    ids: list[int] = []
    for token in (raw or "").split(","):
        token = token.strip()
        if not token:
            continue
        try:
            ids.append(int(token))
        except ValueError:
            continue
    return ids


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # HubSpot
    HUBSPOT_PRIVATE_APP_TOKEN: str = ""
    HUBSPOT_BASE_URL: str = "https://api.hubapi.com"
    HUBSPOT_TIMEOUT: float = 30.0

    # Source store (CS-Cart MySQL)
    DATABASE_URL: str = ""
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "cscart"

    # Sync behaviour
    SYNC_CONCURRENCY: int = 2  # kept low, the HubSpot ceiling is ~10 req/s
    PAGE_SIZE: int = 100
    DRY_RUN: bool = False
    COMPANY_IDS: str = ""
    RATE_LIMIT_DELAY: int = 125  # milliseconds slept after every HubSpot call
    ORDER_STATUSES: str = "P,C"
    DUPLICATE_SCAN_PAGE_SIZE: int = 1000

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Server
    PORT: int = 3000
    CORS_ALLOWED_ORIGINS: str = "*"

    # Monitoring
    SENTRY_DSN: str = ""

    @property
    def database_url(self) -> str:
        """Explicit DATABASE_URL if set, otherwise built from the DB_* parts."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        url = URL.create(
            "mysql+aiomysql",
            username=self.DB_USER,
            password=self.DB_PASSWORD or None,
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.DB_NAME,
            query={"charset": "utf8mb4"},
        )
        return url.render_as_string(hide_password=False)

    @property
    def company_ids_filter(self) -> list[int]:
        return parse_id_list(self.COMPANY_IDS)

    @property
    def order_statuses(self) -> list[str]:
        return [s.strip() for s in self.ORDER_STATUSES.split(",") if s.strip()]

    @property
    def rate_limit_delay_seconds(self) -> float:
        return max(self.RATE_LIMIT_DELAY, 0) / 1000.0

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
