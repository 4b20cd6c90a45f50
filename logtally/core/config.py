"""
core/config.py

Application configuration via Pydantic Settings.
All values can be overridden with environment variables or a .env file.

Quick start — create a .env file in your project root:
    WORKER_COUNT=8
    CHUNK_SIZE=20000
    SEVERITY=error
    BUCKET_SECONDS=60
"""

from __future__ import annotations

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_OUTPUT_ORDERS = ("sorted", "unordered")
_KEY_FORMATS = ("iso", "epoch")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _default_worker_count() -> int:
    return os.cpu_count() or 1


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Workers
    WORKER_COUNT: int = Field(default_factory=_default_worker_count, ge=1)
    CHUNK_SIZE: int = Field(default=10_000, ge=1)
    QUEUE_DEPTH: int = Field(default=0, ge=0)   # 0 → 2 chunks per worker

    # Record selection
    SEVERITY: str = "error"
    BUCKET_SECONDS: int = Field(default=0, ge=0)   # 0 → raw timestamp is the key

    # Output
    OUTPUT_ORDER: str = "sorted"
    KEY_FORMAT: str = "iso"

    # Input
    INPUT_ENCODING: str = "utf-8"

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("SEVERITY")
    @classmethod
    def severity_not_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("SEVERITY must not be empty")
        return v

    @field_validator("OUTPUT_ORDER", "KEY_FORMAT", mode="before")
    @classmethod
    def lower_choice(cls, v, info):
        if isinstance(v, str):
            v = v.strip().lower()
        allowed = _OUTPUT_ORDERS if info.field_name == "OUTPUT_ORDER" else _KEY_FORMATS
        if v not in allowed:
            raise ValueError(f"{info.field_name} must be one of {allowed}, got {v!r}")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def upper_level(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
        if v not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {_LOG_LEVELS}, got {v!r}")
        return v


settings = Settings()
