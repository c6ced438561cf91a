"""
Claude Agent MCP Server.

Exposes Claude agent sessions as an MCP tool: each call runs one session
through the claude CLI and returns the requested projection.

Setup:
    claude mcp add --scope user claude-agent -- claude-agent-mcp

Example:
    # One-shot question, plain text answer
    run_agent(prompt='What does src/app.py do?', output_format='text')

    # Follow up on an earlier session in a fork
    run_agent(prompt='Try a different approach', operation='fork', session_id='0f3c...')
"""

from __future__ import annotations

import contextlib
import sys
from collections.abc import AsyncIterator
from typing import Any

import attrs
from mcp.server.fastmcp import Context, FastMCP

from agent_runner.config import settings
from agent_runner.mcp.utils import DualLogger
from agent_runner.runtime.claude_cli import ClaudeCliRuntime
from agent_runner.schemas.request import AdvancedOptions, SessionConfig
from agent_runner.schemas.types import OutputFormat, PermissionMode, SessionMode, SystemPromptMode
from agent_runner.services.request_builder import SessionRequestBuilder
from agent_runner.services.runner import AgentBatchRunner

# ==============================================================================
# Server State (immutable)
# ==============================================================================


@attrs.define(frozen=True)
class ServerState:
    """
    Immutable server state initialized at startup.

    Contains the runtime and services needed for tool execution.
    """

    runtime: ClaudeCliRuntime
    builder: SessionRequestBuilder
    claude_path: str


# ==============================================================================
# Lifespan Management
# ==============================================================================


@contextlib.asynccontextmanager
async def lifespan(mcp_server: FastMCP) -> AsyncIterator[None]:
    """
    Manage server lifecycle and state initialization.

    Fails at startup when the claude CLI is not installed.
    """
    runtime = ClaudeCliRuntime()
    claude_path = runtime.resolve_executable()

    state = ServerState(
        runtime=runtime,
        builder=SessionRequestBuilder(),
        claude_path=claude_path,
    )

    # Register tools with closure over state
    register_tools(state)

    print(f'[MCP Server] {settings.APP_NAME} {settings.VERSION}', file=sys.stderr)
    print(f'[MCP Server] Claude CLI: {claude_path}', file=sys.stderr)

    yield  # Setup successful; application active

    print('[MCP Server] Shutting down', file=sys.stderr)


# ==============================================================================
# Server Setup
# ==============================================================================

server = FastMCP('claude-agent', lifespan=lifespan)


# ==============================================================================
# Tool Registration (Closure Pattern)
# ==============================================================================


def register_tools(state: ServerState) -> None:
    """
    Register MCP tools with closure over server state.

    Args:
        state: Server state containing the runtime
    """

    @server.tool()
    async def run_agent(
        prompt: str,
        operation: SessionMode = 'new',
        session_id: str = '',
        cwd: str = '',
        model: str | None = None,
        permission_mode: PermissionMode | None = None,
        max_turns: int = 0,
        timeout: float = 0,
        output_format: OutputFormat = 'summary',
        system_prompt_mode: SystemPromptMode = 'default',
        system_prompt: str = '',
        fallback_model: str = '',
        max_thinking_tokens: int = 0,
        allowed_tools: list[str] | None = None,
        disallowed_tools: list[str] | None = None,
        additional_directories: list[str] | None = None,
        debug: bool = False,
        include_partial_messages: bool = False,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Run one Claude agent session and return its projection.

        Args:
            prompt: Prompt to send (required, non-blank)
            operation: 'new', 'continue' (most recent session), 'resume' or 'fork'
            session_id: Session to resume or fork (required for those operations)
            cwd: Working directory for the agent
            model: Model alias or name (default: DEFAULT_MODEL setting)
            permission_mode: Permission mode (default: DEFAULT_PERMISSION_MODE setting)
            max_turns: Maximum conversation turns (0 = unlimited)
            timeout: Seconds before the run is cancelled and the partial stream returned (0 = none)
            output_format: 'text', 'summary' or 'full'
            system_prompt_mode: 'default', 'append' or 'custom'
            system_prompt: Text used by the append/custom modes
            fallback_model: Model used when the primary one is overloaded
            max_thinking_tokens: Thinking budget (0 = runtime default)
            allowed_tools: Tools the agent may use without asking
            disallowed_tools: Tools the agent may not use
            additional_directories: Extra directories the agent may access
            debug: Forward session progress to the client log
            include_partial_messages: Keep stream_event messages (visible in the full output)

        Returns:
            The projection: {'result': ...} for text, the summary or the full transcript

        Examples:
            # Quick answer
            result = await run_agent(prompt='List the TODOs in this repo', output_format='text')
            # Returns: {'result': '...'}
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx)

        config = SessionConfig(
            operation=operation,
            prompt=prompt,
            session_id=session_id,
            cwd=cwd,
            model=model or settings.DEFAULT_MODEL,
            permission_mode=permission_mode or settings.DEFAULT_PERMISSION_MODE,
            max_turns=max_turns,
            timeout=float(timeout),
            output_format=output_format,
            advanced=AdvancedOptions(
                system_prompt_mode=system_prompt_mode,
                custom_system_prompt=system_prompt if system_prompt_mode == 'custom' else '',
                append_system_prompt=system_prompt if system_prompt_mode == 'append' else '',
                fallback_model=fallback_model,
                max_thinking_tokens=max_thinking_tokens,
                allowed_tools=allowed_tools or [],
                disallowed_tools=disallowed_tools or [],
                additional_directories=additional_directories or [],
                debug=debug,
                include_partial_messages=include_partial_messages,
            ),
        )

        runner = AgentBatchRunner(state.runtime, logger, builder=state.builder)
        record = await runner.run_item(config)
        return dict(record.data)


def main() -> None:
    """Run the MCP server."""
    server.run()


if __name__ == '__main__':
    main()
