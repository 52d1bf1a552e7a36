"""
Settings for the verifier, read from the environment or a `.env` file.

Every module reads configuration through `get_settings()`; nothing else
touches os.environ.
"""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    # PostgreSQL (tasks, evidence, signals, scores)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "levelup_user"
    postgres_password: str = "password"
    postgres_db: str = "levelup_db"
    postgres_pool_size: int = 5
    postgres_max_overflow: int = 10

    # MongoDB (GitHub snapshot documents)
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "levelup_docs"
    mongodb_timeout_ms: int = 5000

    # GitHub REST API
    github_api_url: str = "https://api.github.com"
    github_token: str = ""
    github_timeout_seconds: int = 10

    # JWT verification (tokens are issued by the auth provider)
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = None

    # Calendar days and ISO-week periods are computed in this zone
    timezone: str = "UTC"

    log_level: str = "INFO"
    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def postgres_url(self) -> URL:
        """SQLAlchemy URL; the password is escaped by URL.create."""
        return URL.create(
            "postgresql+psycopg2",
            username=self.postgres_user,
            password=self.postgres_password,
            host=self.postgres_host,
            port=self.postgres_port,
            database=self.postgres_db
        )

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
