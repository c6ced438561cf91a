"""
Runner configuration.

Extends base configuration with defaults applied to items that omit them.
"""

from __future__ import annotations

from agent_runner.config.base import BaseRunnerSettings, lazy_settings
from agent_runner.schemas.types import PermissionMode


class RunnerSettings(BaseRunnerSettings):
    """Runner-specific configuration."""

    DEFAULT_MODEL: str = 'sonnet'
    DEFAULT_PERMISSION_MODE: PermissionMode = 'bypassPermissions'


# Module-level singleton (lazy-loaded)
settings = lazy_settings(RunnerSettings)
