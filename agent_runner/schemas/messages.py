"""
Pydantic models for the agent runtime's stream-json messages.

The runtime emits one JSON object per message. This module types every message
kind the aggregation layer consumes and every content part that can appear
inside user and assistant messages.

Message kinds (validated left-to-right, see StreamMessage):
- system/init: session metadata (model, permission mode, cwd, tools, MCP servers)
- system/<other>: housekeeping notices (compact_boundary, ...), opaque here
- user: human prompt, or a synthetic runtime echo (tool results)
- assistant: ordered content parts (text, tool_use, thinking, ...)
- result: terminal message with success/failure and aggregate metrics
- stream_event: partial/incremental API events, only kept on request
- anything else (tool_progress, ...): opaque, kept for the full projection

Content parts are a discriminated union on 'type' with an UnknownContent
catch-all; messages end in an UnknownMessage catch-all. Kinds added by newer
runtimes are kept verbatim and ignored by aggregation, while a malformed
message or part of a modeled kind still fails validation. Consumers match
exhaustively with assert_never.

Field names mirror the wire keys (permissionMode, modelUsage, isSynthetic) so
model_dump(mode='json', exclude_unset=True) re-emits the original object.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Annotated, Any, Literal

import pydantic

from agent_runner.schemas.types import PermissiveModel

# ==============================================================================
# Content Parts (Discriminated Union)
# ==============================================================================


class TextContent(PermissiveModel):
    """Text segment from a user or assistant message."""

    type: Literal['text']
    text: str


class ToolUseContent(PermissiveModel):
    """Tool invocation request from an assistant message."""

    type: Literal['tool_use']
    id: str
    name: str
    input: Mapping[str, Any] = pydantic.Field(default_factory=dict)


class ThinkingContent(PermissiveModel):
    """Extended thinking block from an assistant message."""

    type: Literal['thinking']
    thinking: str
    signature: str | None = None


class RedactedThinkingContent(PermissiveModel):
    """Encrypted thinking block from an assistant message."""

    type: Literal['redacted_thinking']
    data: str


class ServerToolUseContent(PermissiveModel):
    """Server-side tool invocation (web search) from an assistant message."""

    type: Literal['server_tool_use']
    id: str
    name: str
    input: Mapping[str, Any] = pydantic.Field(default_factory=dict)


class WebSearchToolResultContent(PermissiveModel):
    """Server-side web search result embedded in an assistant message."""

    type: Literal['web_search_tool_result']
    tool_use_id: str
    content: Any = None


class ToolResultContent(PermissiveModel):
    """Tool execution result echoed back in a user message."""

    type: Literal['tool_result']
    tool_use_id: str
    content: str | Sequence[Mapping[str, Any]] | None = None
    is_error: bool | None = None


class ImageContent(PermissiveModel):
    """Image attached to a user message or tool result."""

    type: Literal['image']
    source: Mapping[str, Any]


class DocumentContent(PermissiveModel):
    """Document (PDF) attached to a user message."""

    type: Literal['document']
    source: Mapping[str, Any]


KNOWN_CONTENT_TYPES = frozenset(
    {
        'text',
        'tool_use',
        'thinking',
        'redacted_thinking',
        'server_tool_use',
        'web_search_tool_result',
        'tool_result',
        'image',
        'document',
    }
)


class UnknownContent(PermissiveModel):
    """Content part kind not modeled above. Kept verbatim, ignored by aggregation."""

    type: str

    @pydantic.field_validator('type')
    @classmethod
    def reject_known_fallthrough(cls, v: str) -> str:
        """A malformed part of a modeled kind must fail, not land here."""
        if v in KNOWN_CONTENT_TYPES:
            raise ValueError(f'{v!r} content part did not match its model (missing or invalid fields)')
        return v


# Discriminated union of all modeled content part kinds
_KnownContentPart = Annotated[
    TextContent
    | ToolUseContent
    | ThinkingContent
    | RedactedThinkingContent
    | ServerToolUseContent
    | WebSearchToolResultContent
    | ToolResultContent
    | ImageContent
    | DocumentContent,
    pydantic.Field(discriminator='type'),
]

# UnknownContent must stay last so modeled kinds win
ContentPart = Annotated[
    _KnownContentPart | UnknownContent,
    pydantic.Field(union_mode='left_to_right'),
]


# ==============================================================================
# Message Payloads
# ==============================================================================


class UserPayload(PermissiveModel):
    """The API-shaped message carried by a user message."""

    role: Literal['user']
    content: str | Sequence[ContentPart]


class AssistantPayload(PermissiveModel):
    """The API-shaped message carried by an assistant message."""

    role: Literal['assistant']
    content: Sequence[ContentPart]
    model: str | None = None
    id: str | None = None


# ==============================================================================
# System Messages
# ==============================================================================


class McpServerStatus(PermissiveModel):
    """Connection state of an MCP server attached to the session."""

    name: str
    status: str


class SystemInitMessage(PermissiveModel):
    """First message of every session: runtime configuration as applied."""

    type: Literal['system']
    subtype: Literal['init']
    session_id: str
    model: str
    permissionMode: str
    cwd: str
    tools: Sequence[str] = ()
    mcp_servers: Sequence[McpServerStatus] = ()


class SystemMessage(PermissiveModel):
    """Any non-init system message (compact_boundary, hook notices, ...)."""

    type: Literal['system']
    subtype: str
    session_id: str | None = None

    @pydantic.field_validator('subtype')
    @classmethod
    def reject_init_fallthrough(cls, v: str) -> str:
        """
        An init message that failed SystemInitMessage validation must not be
        accepted here, otherwise session metadata silently disappears.
        """
        if v == 'init':
            raise ValueError('system/init message did not match SystemInitMessage (missing or invalid fields)')
        return v


# ==============================================================================
# Conversation Messages
# ==============================================================================


class UserMessage(PermissiveModel):
    """User turn input, or a runtime-generated echo shaped like one."""

    type: Literal['user']
    message: UserPayload
    session_id: str | None = None
    parent_tool_use_id: str | None = None
    isSynthetic: bool | None = None

    @property
    def is_synthetic(self) -> bool:
        """
        True for messages the runtime generated rather than the caller.

        The runtime flags some of these explicitly (isSynthetic). Tool result
        echoes carry no flag but consist solely of tool_result parts.
        """
        if self.isSynthetic:
            return True
        content = self.message.content
        if isinstance(content, str) or not content:
            return False
        return all(isinstance(part, ToolResultContent) for part in content)


class AssistantMessage(PermissiveModel):
    """Assistant output: ordered text segments and tool invocations."""

    type: Literal['assistant']
    message: AssistantPayload
    session_id: str | None = None
    parent_tool_use_id: str | None = None


# ==============================================================================
# Result Message
# ==============================================================================


class ResultUsage(PermissiveModel):
    """Aggregate token usage for the whole session."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0


class ModelUsage(PermissiveModel):
    """Token and cost breakdown for one model used during the session."""

    inputTokens: int = 0
    outputTokens: int = 0
    cacheReadInputTokens: int = 0
    cacheCreationInputTokens: int = 0
    webSearchRequests: int = 0
    costUSD: float = 0.0


class PermissionDenial(PermissiveModel):
    """A tool call the permission layer refused."""

    tool_name: str
    tool_use_id: str
    tool_input: Mapping[str, Any] = pydantic.Field(default_factory=dict)


class ResultMessage(PermissiveModel):
    """Terminal message: success or failure plus aggregate metrics.

    subtype is 'success', 'error_max_turns', 'error_during_execution', or any
    other string a newer runtime may send; anything but 'success' is a failure.
    """

    type: Literal['result']
    subtype: str
    session_id: str | None = None
    is_error: bool = False
    num_turns: int = 0
    duration_ms: int = 0
    duration_api_ms: int = 0
    total_cost_usd: float = 0.0
    result: str | None = None
    usage: ResultUsage | None = None
    modelUsage: Mapping[str, ModelUsage] | None = None
    permission_denials: Sequence[PermissionDenial] = ()


# ==============================================================================
# Stream Event
# ==============================================================================


class StreamEventMessage(PermissiveModel):
    """Partial API event (content_block_delta, ...). Opaque to aggregation."""

    type: Literal['stream_event']
    event: Mapping[str, Any]
    session_id: str | None = None
    parent_tool_use_id: str | None = None


# ==============================================================================
# Unknown Message
# ==============================================================================

KNOWN_MESSAGE_TYPES = frozenset({'system', 'user', 'assistant', 'result', 'stream_event'})


class UnknownMessage(PermissiveModel):
    """Message kind not modeled above (tool_progress, ...). Opaque to aggregation."""

    type: str

    @pydantic.field_validator('type')
    @classmethod
    def reject_known_fallthrough(cls, v: str) -> str:
        """A malformed message of a modeled kind must fail, not land here."""
        if v in KNOWN_MESSAGE_TYPES:
            raise ValueError(f'{v!r} message did not match its model (missing or invalid fields)')
        return v


# ==============================================================================
# Stream Message (Union)
# ==============================================================================

# Union of all message kinds (validated left-to-right)
# NOTE: Cannot use discriminator='type' because two kinds share type='system'
# SystemInitMessage must come before SystemMessage so init matches first
StreamMessage = Annotated[
    SystemInitMessage
    | SystemMessage  # Must be after SystemInitMessage!
    | UserMessage
    | AssistantMessage
    | ResultMessage
    | StreamEventMessage
    | UnknownMessage,  # Catch-all, must be last
    pydantic.Field(union_mode='left_to_right'),
]

# Type adapter for validating raw wire objects (required for union types)
StreamMessageAdapter: pydantic.TypeAdapter[StreamMessage] = pydantic.TypeAdapter(StreamMessage)


def describe_message(message: StreamMessage) -> str:
    """Short 'type' or 'type/subtype' label for diagnostics."""
    subtype = getattr(message, 'subtype', None)
    if subtype:
        return f'{message.type}/{subtype}'
    return message.type


def dump_message(message: StreamMessage) -> dict[str, Any]:
    """Re-emit a message as the JSON object it was parsed from."""
    return message.model_dump(mode='json', exclude_unset=True)
