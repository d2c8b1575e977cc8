"""Configuration module for textoc."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from textoc import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config: lives alongside the default notes directory
_USER_ENV = Path.home() / ".textoc" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class TextocConfig(BaseModel):
    """Configuration for the textoc workspace."""

    # Base directory relative paths are resolved against
    base_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("TEXTOC_BASE_DIR", str(Path.home() / ".textoc"))
        )
    )
    # File mirror directory (one markdown file per note, git repository root)
    notes_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("TEXTOC_NOTES_DIR", "textoc-notes"))
    )
    # Relational store
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("TEXTOC_DATABASE_PATH", "db/textoc.db")
        )
    )
    # Quiet period before a live-typed draft is committed to the store
    debounce_seconds: float = Field(
        default_factory=lambda: float(os.getenv("TEXTOC_DEBOUNCE_SECONDS", "1.0"))
    )
    # When switching notes: commit a pending draft (True) or drop it (False)
    flush_on_switch: bool = Field(
        default_factory=lambda: _env_flag("TEXTOC_FLUSH_ON_SWITCH", "true")
    )
    # Git sync configuration
    git_enabled: bool = Field(
        default_factory=lambda: _env_flag("TEXTOC_GIT_ENABLED", "true")
    )
    git_remote: str = Field(
        default_factory=lambda: os.getenv("TEXTOC_GIT_REMOTE", "origin")
    )
    git_branch: str = Field(
        default_factory=lambda: os.getenv("TEXTOC_GIT_BRANCH", "main")
    )
    # Seconds before a single git invocation is abandoned
    git_timeout: int = Field(
        default_factory=lambda: int(os.getenv("TEXTOC_GIT_TIMEOUT", "60"))
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("TEXTOC_LOG_LEVEL", "INFO")
    )
    version: str = Field(default=__version__)

    @model_validator(mode="after")
    def _validate_timing(self) -> "TextocConfig":
        """Reject timing values that would break debounce or git calls."""
        if self.debounce_seconds < 0:
            raise ValueError("debounce_seconds must be >= 0")
        if self.git_timeout <= 0:
            raise ValueError("git_timeout must be > 0")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"

    def get_notes_dir(self) -> Path:
        """Get the absolute path of the file mirror directory (not created)."""
        return self.get_absolute_path(self.notes_dir)


# Create a global config instance
config = TextocConfig()
