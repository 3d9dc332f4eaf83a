"""Configuration module for Lychee Notes."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config lives alongside the default database
_USER_ENV = Path.home() / ".lychee" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

IN_MEMORY_DATABASE = ":memory:"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


class LycheeConfig(BaseModel):
    """Configuration for the Lychee Notes server."""

    # Base directory for relative paths
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("LYCHEE_BASE_DIR", "."))
    )
    # Database configuration (":memory:" for a throwaway in-process database)
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("LYCHEE_DATABASE_PATH", "data/db/lychee.db")
        )
    )
    # Seconds a writer waits on SQLite's lock before failing
    db_busy_timeout: float = Field(
        default_factory=lambda: float(os.getenv("LYCHEE_DB_BUSY_TIMEOUT", "30"))
    )
    db_pool_size: int = Field(
        default_factory=lambda: int(os.getenv("LYCHEE_DB_POOL_SIZE", "5"))
    )
    # Server configuration
    server_name: str = Field(default=os.getenv("LYCHEE_SERVER_NAME", "lychee-notes"))
    # When True, tag names are rewritten to Capitalised-Hyphen-Form on input
    format_tag_names: bool = Field(
        default_factory=lambda: _env_flag("LYCHEE_FORMAT_TAG_NAMES", "false")
    )
    # Logging / metrics (None disables the file handler / persistence)
    log_dir: Optional[Path] = Field(default_factory=lambda: _env_path("LYCHEE_LOG_DIR"))
    metrics_file: Optional[Path] = Field(
        default_factory=lambda: _env_path("LYCHEE_METRICS_FILE")
    )

    model_config = {"validate_assignment": True}

    @model_validator(mode="after")
    def _validate_database_settings(self) -> "LycheeConfig":
        """Reject database settings SQLAlchemy would only fail on later."""
        if self.db_busy_timeout <= 0:
            raise ValueError("db_busy_timeout must be > 0")
        if self.db_pool_size < 1:
            raise ValueError("db_pool_size must be >= 1")
        return self

    def is_in_memory(self) -> bool:
        """Whether the database lives only inside this process."""
        return str(self.database_path) == IN_MEMORY_DATABASE

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite.

        Creates the parent directory of a file database as a side effect.
        """
        if self.is_in_memory():
            return "sqlite://"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"


# Create a global config instance
config = LycheeConfig()
