"""
Application configuration and environment settings.
"""
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Union


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "SplitLedger"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./splitledger.db"
    DB_ECHO: bool = False

    # JWT
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7

    # CORS
    CORS_ORIGINS: Union[List[str], str] = ["http://localhost:8081", "http://localhost:19006"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Balance computation
    BALANCE_MAX_WORKERS: int = 8  # Upper bound on concurrently computed groups per request

    # Identity enrichment
    IDENTITY_BATCH_SIZE: int = 50  # Max user ids resolved per lookup batch
    IDENTITY_MAX_WORKERS: int = 10  # Parallel email lookups within one batch
    AUTH_ADMIN_URL: str = ""  # Auth admin API base (e.g. https://xxxx.supabase.co/auth/v1). Empty = read emails from the users table
    AUTH_SERVICE_ROLE_KEY: str = ""  # Service key sent to the auth admin API
    IDENTITY_TIMEOUT_SECONDS: float = 5.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
