"""Agent runtime adapters (implement AgentRuntime from protocols)."""

from __future__ import annotations

from agent_runner.runtime.claude_cli import ClaudeCliRuntime
from agent_runner.runtime.replay import ReplayRuntime

__all__ = [
    'ClaudeCliRuntime',
    'ReplayRuntime',
]
