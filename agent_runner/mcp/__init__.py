"""MCP server entry point for claude-agent-runner."""

from __future__ import annotations

from agent_runner.mcp.server import main

__all__ = ['main']
