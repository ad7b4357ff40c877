"""
Default settings for ckload.
"""
from typing import Optional

from pydantic import BaseModel, Field


class StagingSettings(BaseModel):
    """Where bulk-load buffers stage their rows."""
    directory: str = Field(
        default="/dev/shm",
        description="Ephemeral, memory-backed directory for staging files"
    )
    extension: str = Field(
        default="csv",
        description="Extension of staging files"
    )


class HttpSettings(BaseModel):
    """Stateless HTTP transport settings."""
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout in seconds"
    )


class NativeSettings(BaseModel):
    """Pooled transport settings (MySQL-compatible interface)."""
    default_port: int = Field(default=9004, ge=1, le=65535)
    connect_timeout: int = Field(
        default=10,
        ge=1,
        description="Link connect timeout in seconds"
    )
    insert_chunk_size: int = Field(
        default=10_000,
        gt=0,
        description="Rows per executemany call when replaying a staging file"
    )


class LoggingSettings(BaseModel):
    """Logging output."""
    level: str = Field(default="INFO")
    file: Optional[str] = Field(
        default=None,
        description="Optional log file; console only when unset"
    )


class Settings(BaseModel):
    """Global settings for ckload."""
    staging: StagingSettings = StagingSettings()
    http: HttpSettings = HttpSettings()
    native: NativeSettings = NativeSettings()
    logging: LoggingSettings = LoggingSettings()


settings = Settings()
