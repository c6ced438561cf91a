"""
Base configuration for claude-agent-runner.

Shared settings and helper functions for every entry point (CLI, MCP).
"""

from __future__ import annotations

import os
import pathlib
from typing import TypeVar

import lazy_object_proxy
import pydantic
import pydantic_settings

T = TypeVar('T', bound='BaseRunnerSettings')


class BaseRunnerSettings(pydantic_settings.BaseSettings):
    """Shared configuration across all entry points (CLI, MCP)."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='forbid',  # Reject unknown environment variables
    )

    # Application metadata
    APP_NAME: str = 'claude-agent-runner'
    VERSION: str = '0.1.0'

    # Agent runtime process
    CLAUDE_EXECUTABLE: str = 'claude'
    STREAM_LINE_LIMIT: int = 16 * 1024 * 1024  # Max bytes per stream-json line
    TERMINATE_GRACE_SECONDS: float = 5.0  # SIGTERM -> SIGKILL delay on cancellation

    @pydantic.field_validator('STREAM_LINE_LIMIT')
    @classmethod
    def validate_stream_line_limit(cls, v: int) -> int:
        """A line limit below one byte would reject every message."""
        if v <= 0:
            raise ValueError('STREAM_LINE_LIMIT must be positive')
        return v

    @pydantic.field_validator('TERMINATE_GRACE_SECONDS')
    @classmethod
    def validate_grace(cls, v: float) -> float:
        if v < 0:
            raise ValueError('TERMINATE_GRACE_SECONDS must not be negative')
        return v


def get_settings(settings_class: type[T], env_file: str | None = None) -> T:
    """
    Factory for creating settings with dynamic .env file loading.

    LOAD_ENV_FILE environment variable specifies custom .env file path.
    When unset, loads from environment variables only.

    Args:
        settings_class: Settings class to instantiate
        env_file: Optional path to .env file (overrides LOAD_ENV_FILE)

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If specified .env file doesn't exist
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')

    if not env_file_path:
        return settings_class()  # No .env file, load from environment only

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')

    return settings_class(_env_file=resolved_path)


def lazy_settings(settings_class: type[T]) -> T:
    """
    Lazy settings - defers instantiation until first access.

    Args:
        settings_class: Settings class to instantiate

    Returns:
        Proxy that instantiates settings on first access
    """
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))
