"""
Application configuration using pydantic-settings.

Environment variables are loaded from .env file and can be overridden
by actual environment variables.
"""
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field
from functools import lru_cache
from urllib.parse import quote_plus


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "VectorDB"
    DEBUG: bool = False
    API_PREFIX: str = "/api"

    # Multi-tenancy
    ROOT_DOMAIN: str = "vectordb.app"
    # Hosts served by the platform itself (never looked up as custom domains)
    PLATFORM_HOSTS: List[str] = [
        "localhost",
        "127.0.0.1",
        "testserver",
    ]

    # Managed database platform
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_NAME: str = "postgres"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    PROVISION_SCHEMA: bool = False

    # Platform sessions (JWTs issued by the platform's auth service)
    PLATFORM_JWT_SECRET: str = "change-me-use-the-platform-jwt-secret"
    PLATFORM_JWT_ALGORITHM: str = "HS256"
    PLATFORM_JWT_AUDIENCE: str = "authenticated"
    SESSION_COOKIE_NAME: str = "sb-access-token"

    # API keys
    API_KEY_PREFIX: str = "vdb_"

    # Documents and search
    DOCUMENT_BATCH_SIZE: int = 100
    SEARCH_DEFAULT_LIMIT: int = 10
    SEARCH_DEFAULT_THRESHOLD: float = 0.7
    INTEGRATION_SEARCH_LIMIT: int = 3

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "https://*.vectordb.app",
    ]

    @computed_field
    @property
    def DATABASE_URL(self) -> str:
        """Construct database URL from components."""
        password = quote_plus(self.DB_PASSWORD)
        return f"postgresql+asyncpg://{self.DB_USER}:{password}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are only loaded once.
    """
    return Settings()


# Global settings instance
settings = get_settings()
