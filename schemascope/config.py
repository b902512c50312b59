"""Configuration management for schemascope."""

import os
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


def _find_env_file() -> Optional[str]:
    """Find .env file in multiple locations.

    Search order:
    1. Current working directory
    2. ~/.schemascope/.env
    """
    if os.path.exists(".env"):
        return ".env"

    user_env = Path.home() / ".schemascope" / ".env"
    if user_env.exists():
        return str(user_env)

    return None


class Settings(BaseSettings):
    """Analysis options loaded from environment variables.

    Drivers copy these values at construction time, so a running
    analysis never sees a change.
    """

    # MySQL-family DDL output
    show_auto_increment: bool = Field(
        default=False,
        description="Keep AUTO_INCREMENT=N table options in SHOW CREATE TABLE output"
    )

    # Concurrency
    max_workers: int = Field(
        default=4,
        ge=1,
        description="Upper bound on worker threads when the connection allows concurrent use"
    )

    # Cancellation
    timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Deadline in seconds for a whole analysis (default: no deadline)"
    )

    class Config:
        env_prefix = "SCHEMASCOPE_"
        env_file = _find_env_file()
        env_file_encoding = "utf-8"
        frozen = True


# Global settings instance
settings = Settings()
