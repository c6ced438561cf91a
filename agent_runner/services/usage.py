"""
Usage and metrics aggregation.

Extracts the terminal snapshot of a run from its buffer: session identity,
success, result text, session-wide metrics and token totals, the per-model
breakdown, tools used and permission denials.

Missing data is never an error: without a result message every number is
zero, the per-model mapping is empty and the run counts as a failure.
"""

from __future__ import annotations

from collections.abc import Sequence

from agent_runner.schemas.messages import (
    ModelUsage,
    ResultMessage,
    StreamMessage,
    SystemInitMessage,
)
from agent_runner.schemas.outputs import (
    ModelUsageSummary,
    PermissionDenialSummary,
    SessionMetrics,
    TokenTotals,
    UsageRollup,
)
from agent_runner.services.timeline import tool_names

__all__ = [
    'UNKNOWN',
    'aggregate_usage',
    'find_init',
    'find_result',
    'metrics_for',
    'model_usage_for',
    'resolve_session_id',
    'token_totals_for',
]

UNKNOWN = 'unknown'


def find_result(messages: Sequence[StreamMessage]) -> ResultMessage | None:
    """First result message in the buffer (at most one is expected)."""
    return next((m for m in messages if isinstance(m, ResultMessage)), None)


def find_init(messages: Sequence[StreamMessage]) -> SystemInitMessage | None:
    """First system/init message in the buffer."""
    return next((m for m in messages if isinstance(m, SystemInitMessage)), None)


def resolve_session_id(result: ResultMessage | None, init: SystemInitMessage | None) -> str:
    """Result message's session ID, else the init message's, else 'unknown'."""
    if result is not None and result.session_id:
        return result.session_id
    if init is not None and init.session_id:
        return init.session_id
    return UNKNOWN


def metrics_for(result: ResultMessage | None) -> SessionMetrics:
    if result is None:
        return SessionMetrics(turns=0, duration_ms=0, duration_api_ms=0, cost_usd=0.0)
    return SessionMetrics(
        turns=result.num_turns,
        duration_ms=result.duration_ms,
        duration_api_ms=result.duration_api_ms,
        cost_usd=float(result.total_cost_usd),
    )


def token_totals_for(result: ResultMessage | None) -> TokenTotals:
    usage = result.usage if result is not None else None
    if usage is None:
        return TokenTotals(input_tokens=0, output_tokens=0, cache_read_tokens=0, cache_creation_tokens=0)
    return TokenTotals(
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        cache_read_tokens=usage.cache_read_input_tokens,
        cache_creation_tokens=usage.cache_creation_input_tokens,
    )


def _summarize_model(usage: ModelUsage) -> ModelUsageSummary:
    return ModelUsageSummary(
        input_tokens=usage.inputTokens,
        output_tokens=usage.outputTokens,
        cache_read_tokens=usage.cacheReadInputTokens,
        cache_creation_tokens=usage.cacheCreationInputTokens,
        cost_usd=float(usage.costUSD),
        web_search_requests=usage.webSearchRequests,
    )


def model_usage_for(result: ResultMessage | None) -> dict[str, ModelUsageSummary]:
    """Per-model breakdown keyed by model name (empty without data)."""
    if result is None or not result.modelUsage:
        return {}
    return {name: _summarize_model(usage) for name, usage in result.modelUsage.items()}


def aggregate_usage(messages: Sequence[StreamMessage]) -> UsageRollup:
    """
    Terminal snapshot of a run.

    Args:
        messages: Collected buffer

    Returns:
        Rollup with every numeric field defaulted to zero when absent
    """
    result = find_result(messages)
    init = find_init(messages)

    success = result is not None and result.subtype == 'success'

    denials = None
    if result is not None and result.permission_denials:
        denials = [
            PermissionDenialSummary(tool_name=d.tool_name, tool_use_id=d.tool_use_id)
            for d in result.permission_denials
        ]

    return UsageRollup(
        session_id=resolve_session_id(result, init),
        success=success,
        result=result.result if success and result is not None else None,
        error_type=result.subtype if result is not None and not success else None,
        metrics=metrics_for(result),
        usage=token_totals_for(result),
        model_usage=model_usage_for(result),
        tools_used=tool_names(messages),
        permission_denials=denials,
    )
