"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3010, ge=1024, le=65535)
    debug: bool = Field(default=False)

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./data/tablecache.db")
    database_echo: bool = Field(default=False)

    # Cache Configuration
    cache_ttl: int = Field(default=43200, ge=60)  # 12 hours

    # Filter Compilation
    timezone: Optional[str] = Field(default=None)  # utc, +0500, America/Mexico_City, local
    filter_strict_validation: bool = Field(default=False)
    unknown_operator_policy: Literal["equality", "error"] = Field(default="equality")

    # Remote API (refill provider)
    remote_api_url: str = Field(default="https://app.smartsuite.com/api/v1")
    remote_api_token: Optional[str] = Field(default=None)
    remote_account_id: Optional[str] = Field(default=None)
    remote_timeout: int = Field(default=30, ge=5, le=300)
    remote_page_size: int = Field(default=1000, ge=1, le=5000)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite"):
            if ":///" in v:
                db_path = v.split("///")[1]
                if db_path and db_path != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("unknown_operator_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
