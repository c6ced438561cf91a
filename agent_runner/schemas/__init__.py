"""
Schema definitions for claude-agent-runner.

- messages: stream-json wire messages emitted by the agent runtime
- request: item configuration and the normalized runtime options
- outputs: projection and batch output records
"""

from __future__ import annotations

from agent_runner.schemas.types import PermissiveModel, StrictModel

__all__ = [
    'PermissiveModel',
    'StrictModel',
]
