"""
Configuration management for chronicle.

This module provides centralized configuration for all system components:
- History storage locations and git settings
- Logging settings
"""

import os
from pathlib import Path
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class HistoryConfig(BaseModel):
    """Configuration for the versioned document history."""

    snapshots_path: str = Field(
        default="data/snapshots",
        description="Git repository holding raw fetched snapshots",
    )
    versions_path: str = Field(
        default="data/versions",
        description="Git repository holding extracted document versions",
    )
    default_extension: str = Field(
        default="md", min_length=1, description="Extension used for versions"
    )
    snapshot_extension: str = Field(
        default="html", min_length=1, description="Extension used for snapshots"
    )
    remote: str = Field(default="origin", description="Remote to publish to")
    branch: str = Field(default="main", description="Branch to commit on and push")
    author_name: str = Field(
        default="chronicle", description="Committer name for recorded versions"
    )
    author_email: str = Field(
        default="chronicle@localhost",
        description="Committer email for recorded versions",
    )
    publish: bool = Field(
        default=False,
        description="Push recorded versions to the remote after a tracking run",
    )

    @property
    def snapshots_dir(self) -> Path:
        """Get absolute path to snapshots repository."""
        return Path(self.snapshots_path).resolve()

    @property
    def versions_dir(self) -> Path:
        """Get absolute path to versions repository."""
        return Path(self.versions_path).resolve()


class LogConfig(BaseModel):
    """Configuration for logging system."""

    level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: str = Field(
        default="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
        "<level>{message}</level>",
        description="Log message format",
    )
    rotation: str = Field(default="100 MB", description="Log file rotation size")
    retention: str = Field(default="1 month", description="Log file retention period")
    log_dir: str = Field(default="logs", description="Directory for log files")
    enable_file_logging: bool = Field(
        default=True, description="Whether to enable file logging"
    )
    enable_console_logging: bool = Field(
        default=True, description="Whether to enable console logging"
    )


class Config(BaseModel):
    """Main configuration object for chronicle."""

    history: HistoryConfig = Field(default_factory=HistoryConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        return cls(
            history=HistoryConfig(
                snapshots_path=os.getenv("CHRONICLE_SNAPSHOTS_PATH", "data/snapshots"),
                versions_path=os.getenv("CHRONICLE_VERSIONS_PATH", "data/versions"),
                default_extension=os.getenv("CHRONICLE_DEFAULT_EXTENSION", "md"),
                snapshot_extension=os.getenv("CHRONICLE_SNAPSHOT_EXTENSION", "html"),
                remote=os.getenv("CHRONICLE_REMOTE", "origin"),
                branch=os.getenv("CHRONICLE_BRANCH", "main"),
                author_name=os.getenv("CHRONICLE_AUTHOR_NAME", "chronicle"),
                author_email=os.getenv("CHRONICLE_AUTHOR_EMAIL", "chronicle@localhost"),
                publish=_env_flag("CHRONICLE_PUBLISH"),
            ),
            logging=LogConfig(
                level=cast(
                    Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                    os.getenv("LOG_LEVEL", "INFO"),
                ),
                log_dir=os.getenv("LOG_DIR", "logs"),
            ),
        )


# Global configuration instance
# This can be imported throughout the codebase
config = Config.from_env()
