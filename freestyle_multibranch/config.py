"""
Configuration management for Freestyle Multibranch.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


def parse_name_list(raw: str) -> List[str]:
    """
    Parse a comma-separated list of names.

    Examples:
        "master,main" -> ["master", "main"]
        "  trunk , default  " -> ["trunk", "default"]
        "" -> []
    """
    if not raw or not raw.strip():
        return []

    names = [name.strip() for name in raw.split(",")]
    return [n for n in names if n]


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = Field(default="Freestyle Multibranch", env="APP_NAME")
    debug: bool = Field(default=False, env="DEBUG")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="console", env="LOG_FORMAT")

    # Storage
    state_root: str = Field(
        default="./.freestyle-multibranch",
        env="STATE_ROOT",
        description="Directory where project and branch job records are written.",
    )
    workspace_root: str = Field(
        default="./workspace",
        env="WORKSPACE_ROOT",
        description="Workspace root of the local execution node.",
    )

    # Branch selection
    default_marker_file: str = Field(
        default="",
        env="DEFAULT_MARKER_FILE",
        description="Marker file used by the CLI when none is given. Empty = include every head.",
    )
    primary_branch_names: str = Field(
        default="master,main,trunk,default",
        env="PRIMARY_BRANCH_NAMES",
        description="Comma-separated branch names treated as the primary line of development.",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def primary_branches(self) -> List[str]:
        return parse_name_list(self.primary_branch_names)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
