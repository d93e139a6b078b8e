"""Database and logging settings with Pydantic.

Field names map directly onto the environment variables the rest of the
folio stack already uses (``DATABASE_URL``, ``POSTGRES_HOST``,
``DB_AUTO_BOOTSTRAP`` ...), so there is no ``env_prefix``.
"""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import quote

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from folio.core.schema import TABLES_WITHOUT_ID


def normalize_database_url(url: str) -> str:
    """Normalize a database URL for asyncpg.

    Strips SQLAlchemy-style driver suffixes (``postgresql+asyncpg://``,
    ``postgres+psycopg://``) and maps ``postgres://`` to ``postgresql://``.

    >>> normalize_database_url("postgresql+asyncpg://localhost/db")
    'postgresql://localhost/db'
    """
    scheme, sep, rest = url.partition("://")
    if not sep:
        return url
    base = scheme.split("+", 1)[0]
    if base == "postgres":
        base = "postgresql"
    return f"{base}://{rest}"


class FolioSettings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection
    database_url: str | None = None
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "folio"
    postgres_user: str = "folio"
    postgres_password: str = "folio"

    # Pool
    db_pool_min_size: int = Field(default=1, ge=0)
    db_pool_max_size: int = Field(default=10, ge=1)
    db_command_timeout: float = 60.0

    # Adapter behaviour
    db_auto_bootstrap: bool = True
    db_returning_exempt_tables: list[str] = Field(default_factory=lambda: list(TABLES_WITHOUT_ID))
    db_rewrite_identifiers: bool = True

    # Observability
    log_level: str = "INFO"
    log_json: bool | None = None

    @property
    def dsn(self) -> str:
        """Connection string handed to asyncpg."""
        if self.database_url:
            return normalize_database_url(self.database_url)
        user = quote(self.postgres_user, safe="")
        password = quote(self.postgres_password, safe="")
        return (
            f"postgresql://{user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache
def get_settings() -> FolioSettings:
    """Get cached settings instance."""
    return FolioSettings()
