"""
Shared protocols for claude-agent-runner services.

This module contains Protocol definitions used across multiple services.
Having a single source of truth for protocols prevents type incompatibility
issues when the same protocol is defined in multiple modules.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from agent_runner.services.request_builder import SessionRequest


class LoggerProtocol(Protocol):
    """
    Protocol for async logger - enables services to work with any logging implementation.

    Implementations:
    - DualLogger (mcp/utils.py): Logs to both stdout and MCP client
    - CLILogger (cli/logger.py): Logs to stdout with optional verbose mode
    - NullLogger (below): No-op implementation for when logging is optional
    """

    async def info(self, message: str) -> None: ...
    async def debug(self, message: str) -> None: ...
    async def warning(self, message: str) -> None: ...
    async def error(self, message: str) -> None: ...


class NullLogger:
    """
    No-op logger implementation for when logging is optional.

    Injected whenever an item does not ask for debug output, which keeps the
    aggregation path log-free.
    """

    async def info(self, message: str) -> None:
        pass

    async def debug(self, message: str) -> None:
        pass

    async def warning(self, message: str) -> None:
        pass

    async def error(self, message: str) -> None:
        pass


class AgentRuntime(Protocol):
    """
    Protocol for the agent runtime - anything that turns a request into a message stream.

    Implementations:
    - ClaudeCliRuntime (runtime/claude_cli.py): Spawns the claude CLI in stream-json mode
    - ReplayRuntime (runtime/replay.py): Replays a captured stream-json file

    The returned iterator yields raw wire objects in emission order. A runtime
    should stop, and may raise SessionCancelledError, once the request's
    cancellation token fires.
    """

    def stream(self, request: SessionRequest) -> AsyncIterator[Mapping[str, Any]]: ...
