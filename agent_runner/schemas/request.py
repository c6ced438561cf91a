"""
Session request schemas.

SessionConfig is the declarative per-item input supplied by the host layer.
SessionRequestOptions is the normalized option set the builder derives from it:
every unset option is None and is left out of the wire form entirely.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Annotated, Any

import pydantic

from agent_runner.schemas.types import (
    OutputFormat,
    PermissionMode,
    SessionMode,
    StrictModel,
    SystemPromptMode,
)

# ==============================================================================
# Inbound Item Configuration
# ==============================================================================


def _normalize_operation(v: Any) -> Any:
    """Accept the legacy 'query' operation name as an alias for 'new'."""
    if v == 'query':
        return 'new'
    return v  # Let Literal validation fail with original value


class AdvancedOptions(StrictModel):
    """Optional tuning knobs for a single run."""

    system_prompt_mode: SystemPromptMode = 'default'
    append_system_prompt: str = ''
    custom_system_prompt: str = ''
    fallback_model: str = ''
    max_thinking_tokens: int = 0
    allowed_tools: Sequence[str] = ()
    disallowed_tools: Sequence[str] = ()
    additional_directories: Sequence[str] = ()
    debug: bool = False
    include_partial_messages: bool = False


class SessionConfig(StrictModel):
    """Configuration for one work item.

    Zero/negative limits mean "no limit". An empty session_id is only an
    error for operations that need one (resume, fork); the builder decides.
    """

    operation: Annotated[SessionMode, pydantic.BeforeValidator(_normalize_operation)] = 'new'
    prompt: str = ''
    session_id: str = ''
    cwd: str = ''
    model: str = 'sonnet'
    permission_mode: PermissionMode = 'bypassPermissions'
    max_turns: int = 0
    timeout: float = 0
    output_format: OutputFormat = 'summary'
    advanced: AdvancedOptions = pydantic.Field(default_factory=AdvancedOptions)


# ==============================================================================
# Normalized Request Options
# ==============================================================================


class SessionRequestOptions(StrictModel):
    """Runtime options for one run. None means "not set" and is never sent."""

    model: str
    permission_mode: PermissionMode
    cwd: str | None = None

    # Session continuation
    continue_session: bool | None = None
    resume: str | None = None
    fork_session: bool | None = None

    # Limits (only strictly positive values are set)
    max_turns: int | None = None
    max_thinking_tokens: int | None = None

    # System prompt (mutually exclusive)
    system_prompt: str | None = None
    append_system_prompt: str | None = None

    fallback_model: str | None = None

    # Tool permissions
    allowed_tools: Sequence[str] | None = None
    disallowed_tools: Sequence[str] | None = None
    additional_directories: Sequence[str] | None = None

    include_partial_messages: bool | None = None

    def to_wire(self) -> dict[str, Any]:
        """Options as sent to the runtime, with unset fields omitted."""
        return self.model_dump(mode='json', exclude_none=True)
