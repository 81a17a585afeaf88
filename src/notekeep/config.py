"""Configuration module for the notekeep persistence core."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from notekeep import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config: survives reinstalls, lives alongside the data
_USER_ENV = Path.home() / ".notekeep" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class NotekeepConfig(BaseModel):
    """Configuration for the notekeep store and services."""

    # Base directory for the project
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEKEEP_BASE_DIR", "."))
    )
    # Database configuration
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEKEEP_DATABASE_PATH", "data/db/notekeep.db")
        )
    )
    # When True, the SQL store keeps everything in a private in-memory SQLite
    # database shared by all threads of the process.
    in_memory_db: bool = Field(
        default_factory=lambda: _env_flag("NOTEKEEP_IN_MEMORY_DB", "false")
    )
    # Text export destination
    export_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEKEEP_EXPORT_DIR", "data/export"))
    )
    # When True, a failed commit keeps the pending content changes so that the
    # next save resends them. Default is clear-on-attempt.
    strict_commit: bool = Field(
        default_factory=lambda: _env_flag("NOTEKEEP_STRICT_COMMIT", "false")
    )
    default_bg_color_id: int = Field(
        default_factory=lambda: int(os.getenv("NOTEKEEP_DEFAULT_BG_COLOR", "0"))
    )
    call_record_folder_name: str = Field(
        default_factory=lambda: os.getenv(
            "NOTEKEEP_CALL_RECORD_FOLDER_NAME", "Call notes"
        )
    )
    export_date_format: str = Field(
        default_factory=lambda: os.getenv("NOTEKEEP_EXPORT_DATE_FORMAT", "%m-%d %H:%M")
    )
    version: str = Field(default=__version__)

    @model_validator(mode="after")
    def _validate_settings(self) -> "NotekeepConfig":
        """Reject values the services cannot work with."""
        if self.default_bg_color_id < 0:
            raise ValueError("default_bg_color_id must be >= 0")
        if not self.export_date_format.strip():
            raise ValueError("export_date_format cannot be empty")
        if self.strict_commit:
            logger.info(
                "Strict commit mode enabled: failed commits keep pending content changes"
            )
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        if self.in_memory_db:
            return "sqlite://"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"

    def get_export_dir(self) -> Path:
        """Get the absolute export directory (not created here)."""
        return self.get_absolute_path(self.export_dir)


# Create a global config instance
config = NotekeepConfig()
