"""
Shared exceptions for claude-agent-runner.

Domain-specific exceptions used across services.

Exception Hierarchy:
    AgentRunnerError (base)
    ├── ValidationError (item config rejected before any stream consumption)
    └── RuntimeStreamError (failure while consuming the message stream)
        ├── RuntimeNotFoundError (agent executable not on PATH)
        └── SessionCancelledError (runtime aborted because the cancellation token fired)
"""

from __future__ import annotations


class AgentRunnerError(Exception):
    """Base exception for all claude-agent-runner errors."""


class ValidationError(AgentRunnerError):
    """Raised when an item's configuration cannot produce a session request."""


class RuntimeStreamError(AgentRunnerError):
    """Raised when consuming the runtime's message stream fails."""


class RuntimeNotFoundError(RuntimeStreamError):
    """Raised when the agent runtime executable cannot be located."""

    def __init__(self, executable: str) -> None:
        self.executable = executable
        super().__init__(f'Claude Code CLI not found in PATH: {executable!r}\nInstall from: https://claude.ai/code')


class SessionCancelledError(RuntimeStreamError):
    """Raised by a runtime that stopped early because cancellation was requested."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f'Session cancelled: {reason}')
