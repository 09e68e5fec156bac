"""Application settings, read once from the environment and passed explicitly."""
from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeletePolicy(str, Enum):
    """Who may delete a ticket."""
    AUTHENTICATED = "authenticated"
    OWNER_OR_ADMIN = "owner_or_admin"
    ADMIN = "admin"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="CHEMFLOW_", extra="ignore")

    app_name: str = Field(default="chemflow")
    log_level: str = Field(default="INFO")

    # Use PostgreSQL in production, SQLite locally
    database_url: str = Field(default="sqlite:///./chemflow.db")

    jwt_secret: str = Field(default="change-me-in-production")
    jwt_algorithm: str = Field(default="HS256")
    jwt_ttl_minutes: int = Field(default=480)

    upload_dir: str = Field(default="uploads")

    delete_policy: DeletePolicy = Field(default=DeletePolicy.AUTHENTICATED)
    redact_nested: bool = Field(default=False)
    default_window_days: int = Field(default=30)


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the application settings."""
    return Settings()
