"""
Projection output schemas.

Models for the three consumer-facing views of a collected message stream
(text, summary, full) and the derived entities they are built from
(turns, usage rollup). Field names are the JSON keys consumers see.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, ClassVar

import pydantic

from agent_runner.schemas.types import StrictModel

# ==============================================================================
# Output Base
# ==============================================================================


class OutputModel(StrictModel):
    """Strict model whose optional sections disappear from JSON when unset.

    Fields named in OMIT_IF_NONE are dropped from the serialized output when
    their value is None (rather than serialized as null).
    """

    OMIT_IF_NONE: ClassVar[frozenset[str]] = frozenset()

    @pydantic.model_serializer(mode='wrap')
    def _omit_absent_sections(self, handler: pydantic.SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        for key in self.OMIT_IF_NONE:
            if data.get(key) is None:
                data.pop(key, None)
        return data


# ==============================================================================
# Turns
# ==============================================================================


class ToolInvocation(OutputModel):
    """A tool the assistant asked to run during a turn.

    success is always True: the content stream carries no execution outcome.
    """

    name: str
    input: Mapping[str, Any]
    success: bool = True


class Turn(OutputModel):
    """One user prompt and the assistant's response to it."""

    turn: int
    user: str
    assistant: str
    tools: Sequence[ToolInvocation]


# ==============================================================================
# Usage Rollup
# ==============================================================================


class SessionMetrics(OutputModel):
    """Session-wide counters from the result message."""

    turns: int
    duration_ms: int
    duration_api_ms: int
    cost_usd: float


class TokenTotals(OutputModel):
    """Session-wide token counts."""

    input_tokens: int
    output_tokens: int
    cache_read_tokens: int
    cache_creation_tokens: int


class ModelUsageSummary(OutputModel):
    """Token and cost counts for one model."""

    input_tokens: int
    output_tokens: int
    cache_read_tokens: int
    cache_creation_tokens: int
    cost_usd: float
    web_search_requests: int


class PermissionDenialSummary(OutputModel):
    """A refused tool call."""

    tool_name: str
    tool_use_id: str


class UsageRollup(OutputModel):
    """Terminal snapshot of a run, independent of turn reconstruction."""

    session_id: str
    success: bool
    result: str | None
    error_type: str | None
    metrics: SessionMetrics
    usage: TokenTotals
    model_usage: Mapping[str, ModelUsageSummary]
    tools_used: Sequence[str]
    permission_denials: Sequence[PermissionDenialSummary] | None


# ==============================================================================
# Text Projection
# ==============================================================================


class TextOutput(OutputModel):
    """Bare result string."""

    result: str


# ==============================================================================
# Summary Projection
# ==============================================================================


class ConversationCounts(OutputModel):
    """Message counts and tool names across the whole buffer."""

    user_messages: int
    assistant_messages: int
    tools_used: Sequence[str]


class SystemInfo(OutputModel):
    """Session metadata from the init message."""

    model: str
    cwd: str
    permission_mode: str


class SummaryOutput(OutputModel):
    """Metrics-oriented summary of a run."""

    OMIT_IF_NONE: ClassVar[frozenset[str]] = frozenset({'error_type', 'permission_denials'})

    session_id: str
    success: bool
    result: str | None
    error_type: str | None = None
    metrics: SessionMetrics
    usage: TokenTotals
    model_usage: Mapping[str, ModelUsageSummary]
    conversation: ConversationCounts
    system: SystemInfo
    permission_denials: Sequence[PermissionDenialSummary] | None = None


# ==============================================================================
# Full Projection
# ==============================================================================


class McpServerInfo(OutputModel):
    """MCP server attached to the session."""

    name: str
    status: str


class InitInfo(OutputModel):
    """Session configuration as reported by the runtime."""

    model: str
    permission_mode: str
    cwd: str
    tools: Sequence[str]
    mcp_servers: Sequence[McpServerInfo]


class ResultBlock(OutputModel):
    """Terminal result, mirroring the summary's metrics and usage."""

    OMIT_IF_NONE: ClassVar[frozenset[str]] = frozenset({'error_type'})

    success: bool
    text: str | None
    error_type: str | None = None
    metrics: SessionMetrics
    usage: TokenTotals
    model_usage: Mapping[str, ModelUsageSummary]


class ParsedSession(OutputModel):
    """Structured reading of the buffer."""

    OMIT_IF_NONE: ClassVar[frozenset[str]] = frozenset({'init', 'result'})

    session_id: str
    init: InitInfo | None = None
    timeline: Sequence[Turn]
    result: ResultBlock | None = None


class FullOutput(OutputModel):
    """Raw buffer plus the parsed timeline."""

    messages: Sequence[Mapping[str, Any]]
    parsed: ParsedSession


Projection = TextOutput | SummaryOutput | FullOutput


# ==============================================================================
# Output Records
# ==============================================================================


class OutputRecord(StrictModel):
    """One record per input item: the projection, or an error record."""

    item_index: int
    data: Mapping[str, Any]
