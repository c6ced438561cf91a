"""
Projection formatters - the three read-only views of a collected buffer.

- text: the single most useful string (result, advisory error, or last reply)
- summary: metrics, usage, conversation counts and session metadata
- full: the buffer verbatim plus the parsed timeline

Each formatter is a pure function of the buffer: it never mutates it, and
formatting the same buffer twice gives identical output.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import assert_never

from agent_runner.schemas.messages import (
    AssistantMessage,
    StreamMessage,
    SystemInitMessage,
    TextContent,
    UserMessage,
    dump_message,
)
from agent_runner.schemas.outputs import (
    ConversationCounts,
    FullOutput,
    InitInfo,
    McpServerInfo,
    ParsedSession,
    Projection,
    ResultBlock,
    SummaryOutput,
    SystemInfo,
    TextOutput,
)
from agent_runner.schemas.types import OutputFormat
from agent_runner.services.timeline import reconstruct_turns
from agent_runner.services.usage import (
    UNKNOWN,
    aggregate_usage,
    find_init,
    find_result,
    metrics_for,
    model_usage_for,
    resolve_session_id,
    token_totals_for,
)

__all__ = [
    'EXECUTION_ERROR_TEXT',
    'MAX_TURNS_TEXT',
    'NO_RESPONSE_TEXT',
    'format_full',
    'format_projection',
    'format_summary',
    'format_text',
]

MAX_TURNS_TEXT = 'Error: Maximum turns reached. Increase maxTurns or set to 0.'
EXECUTION_ERROR_TEXT = 'Error: Execution failed. Enable debug mode for details.'
NO_RESPONSE_TEXT = 'No response generated'


# ==============================================================================
# Text
# ==============================================================================


def format_text(messages: Sequence[StreamMessage]) -> TextOutput:
    """
    Bare result string.

    Precedence (first match wins): successful result text, max-turns advisory,
    execution-error advisory, first text part of the last assistant message,
    'No response generated'.
    """
    result = find_result(messages)

    if result is not None and result.subtype == 'success' and result.result:
        return TextOutput(result=result.result)

    if result is not None and result.subtype == 'error_max_turns':
        return TextOutput(result=MAX_TURNS_TEXT)

    if result is not None and result.subtype == 'error_during_execution':
        return TextOutput(result=EXECUTION_ERROR_TEXT)

    last_assistant = next((m for m in reversed(messages) if isinstance(m, AssistantMessage)), None)
    if last_assistant is not None:
        text = next((p.text for p in last_assistant.message.content if isinstance(p, TextContent)), '')
        if text:
            return TextOutput(result=text)

    return TextOutput(result=NO_RESPONSE_TEXT)


# ==============================================================================
# Summary
# ==============================================================================


def _system_info(init: SystemInitMessage | None) -> SystemInfo:
    if init is None:
        return SystemInfo(model=UNKNOWN, cwd='', permission_mode=UNKNOWN)
    return SystemInfo(
        model=init.model or UNKNOWN,
        cwd=init.cwd,
        permission_mode=init.permissionMode or UNKNOWN,
    )


def format_summary(messages: Sequence[StreamMessage]) -> SummaryOutput:
    """Metrics-oriented summary; every number is present even without a result message."""
    rollup = aggregate_usage(messages)

    conversation = ConversationCounts(
        user_messages=sum(1 for m in messages if isinstance(m, UserMessage)),
        assistant_messages=sum(1 for m in messages if isinstance(m, AssistantMessage)),
        tools_used=list(rollup.tools_used),
    )

    return SummaryOutput(
        session_id=rollup.session_id,
        success=rollup.success,
        result=rollup.result,
        error_type=rollup.error_type,
        metrics=rollup.metrics,
        usage=rollup.usage,
        model_usage=rollup.model_usage,
        conversation=conversation,
        system=_system_info(find_init(messages)),
        permission_denials=rollup.permission_denials,
    )


# ==============================================================================
# Full
# ==============================================================================


def _init_info(init: SystemInitMessage) -> InitInfo:
    return InitInfo(
        model=init.model,
        permission_mode=init.permissionMode,
        cwd=init.cwd,
        tools=list(init.tools),
        mcp_servers=[McpServerInfo(name=s.name, status=s.status) for s in init.mcp_servers],
    )


def format_full(messages: Sequence[StreamMessage]) -> FullOutput:
    """Buffer verbatim plus session id, init metadata, timeline and result block."""
    result = find_result(messages)
    init = find_init(messages)

    result_block = None
    if result is not None:
        success = result.subtype == 'success'
        result_block = ResultBlock(
            success=success,
            text=result.result if success else None,
            error_type=None if success else result.subtype,
            metrics=metrics_for(result),
            usage=token_totals_for(result),
            model_usage=model_usage_for(result),
        )

    parsed = ParsedSession(
        session_id=resolve_session_id(result, init),
        init=_init_info(init) if init is not None else None,
        timeline=reconstruct_turns(messages),
        result=result_block,
    )
    return FullOutput(messages=[dump_message(m) for m in messages], parsed=parsed)


# ==============================================================================
# Dispatch
# ==============================================================================


def format_projection(output_format: OutputFormat, messages: Sequence[StreamMessage]) -> Projection:
    """Build the projection named by `output_format`."""
    match output_format:
        case 'text':
            return format_text(messages)
        case 'summary':
            return format_summary(messages)
        case 'full':
            return format_full(messages)
        case _:
            assert_never(output_format)
