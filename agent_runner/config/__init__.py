"""Configuration for claude-agent-runner entry points."""

from __future__ import annotations

from agent_runner.config.base import BaseRunnerSettings, get_settings, lazy_settings
from agent_runner.config.runner import RunnerSettings, settings

__all__ = [
    'BaseRunnerSettings',
    'RunnerSettings',
    'get_settings',
    'lazy_settings',
    'settings',
]
