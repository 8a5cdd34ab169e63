"""Service configuration loaded from environment variables."""

import os
from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

MB = 1 << 20

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

# Environment variable for each settings field
ENV_VARS = {
    "directory": "TMPSTORE_DIR",
    "max_entry_size": "TMPSTORE_MAX_ENTRY_SIZE",
    "sweep_interval_seconds": "TMPSTORE_SWEEP_INTERVAL",
    "entry_lifetime_seconds": "TMPSTORE_ENTRY_LIFETIME",
    "host": "TMPSTORE_HOST",
    "port": "TMPSTORE_PORT",
    "log_level": "LOG_LEVEL",
}


class StoreSettings(BaseModel):
    """Settings for the blob store service."""

    directory: Path = Path("tmpstore")
    max_entry_size: int = Field(default=100 * MB, gt=0)
    sweep_interval_seconds: float = Field(default=60 * 60, gt=0)
    entry_lifetime_seconds: float = Field(default=24 * 60 * 60, gt=0)
    host: str = "0.0.0.0"
    port: int = Field(default=80, ge=0, le=65535)
    log_level: LogLevel = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @property
    def sweep_interval(self) -> timedelta:
        return timedelta(seconds=self.sweep_interval_seconds)

    @property
    def entry_lifetime(self) -> timedelta:
        return timedelta(seconds=self.entry_lifetime_seconds)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "StoreSettings":
        """Build settings from environment variables.

        Unset variables keep their defaults. Values are validated by pydantic,
        so a malformed variable raises ``ValidationError``.

        Args:
            environ: Mapping to read instead of ``os.environ``.
        """
        environ = os.environ if environ is None else environ
        values = {
            field: environ[var] for field, var in ENV_VARS.items() if var in environ
        }
        return cls.model_validate(values)
