"""Tests for usage and metrics aggregation."""

from __future__ import annotations

from agent_runner.schemas.messages import StreamMessageAdapter
from agent_runner.services.usage import aggregate_usage, resolve_session_id


def parse(*raw):
    return [StreamMessageAdapter.validate_python(r) for r in raw]


def test_success_rollup(factory) -> None:
    messages = parse(
        factory.init(),
        factory.user('fix bug'),
        factory.assistant(factory.text('done'), factory.tool_use('Bash')),
        factory.result(result='Fixed.', num_turns=3),
    )

    rollup = aggregate_usage(messages)

    assert rollup.session_id == factory.session_id
    assert rollup.success is True
    assert rollup.result == 'Fixed.'
    assert rollup.error_type is None
    assert rollup.metrics.turns == 3
    assert rollup.metrics.duration_ms == 4200
    assert rollup.metrics.duration_api_ms == 3100
    assert rollup.metrics.cost_usd == 0.0123
    assert rollup.usage.input_tokens == 120
    assert rollup.usage.output_tokens == 45
    assert rollup.usage.cache_read_tokens == 2000
    assert rollup.usage.cache_creation_tokens == 10
    assert rollup.tools_used == ['Bash']
    assert rollup.permission_denials is None


def test_model_usage_breakdown(factory) -> None:
    rollup = aggregate_usage(parse(factory.result()))

    breakdown = rollup.model_usage['claude-sonnet-4-5']
    assert breakdown.input_tokens == 120
    assert breakdown.output_tokens == 45
    assert breakdown.cache_read_tokens == 2000
    assert breakdown.cache_creation_tokens == 10
    assert breakdown.cost_usd == 0.0123
    assert breakdown.web_search_requests == 0


def test_failure_reports_subtype_and_hides_result(factory) -> None:
    rollup = aggregate_usage(parse(factory.result(subtype='error_during_execution', result='partial text')))

    assert rollup.success is False
    assert rollup.error_type == 'error_during_execution'
    assert rollup.result is None


def test_unrecognized_result_subtype_is_failure(factory) -> None:
    rollup = aggregate_usage(parse(factory.result(subtype='error_budget_exceeded')))

    assert rollup.success is False
    assert rollup.error_type == 'error_budget_exceeded'


def test_no_result_means_zeroes_and_failure(factory) -> None:
    rollup = aggregate_usage(parse(factory.init(), factory.user('hi')))

    assert rollup.success is False
    assert rollup.result is None
    assert rollup.error_type is None
    assert rollup.metrics.model_dump() == {'turns': 0, 'duration_ms': 0, 'duration_api_ms': 0, 'cost_usd': 0.0}
    assert rollup.usage.model_dump() == {
        'input_tokens': 0,
        'output_tokens': 0,
        'cache_read_tokens': 0,
        'cache_creation_tokens': 0,
    }
    assert rollup.model_usage == {}


def test_missing_usage_and_model_usage_default_to_zero(factory) -> None:
    raw = factory.result()
    del raw['usage']
    del raw['modelUsage']

    rollup = aggregate_usage(parse(raw))

    assert rollup.usage.input_tokens == 0
    assert rollup.model_usage == {}


def test_permission_denials_reported_when_present(factory) -> None:
    raw = factory.result(
        permission_denials=[{'tool_name': 'Write', 'tool_use_id': 'toolu_9', 'tool_input': {'file_path': '/etc/x'}}]
    )

    rollup = aggregate_usage(parse(raw))

    assert rollup.permission_denials is not None
    assert [(d.tool_name, d.tool_use_id) for d in rollup.permission_denials] == [('Write', 'toolu_9')]


def test_session_id_falls_back_to_init_then_unknown(factory) -> None:
    init = parse(factory.init(session_id='from-init'))[0]
    result = parse(factory.result(session_id='from-result'))[0]

    assert resolve_session_id(result, init) == 'from-result'
    assert resolve_session_id(None, init) == 'from-init'
    assert resolve_session_id(None, None) == 'unknown'


def test_first_result_wins(factory) -> None:
    rollup = aggregate_usage(parse(factory.result(result='first'), factory.result(result='second')))

    assert rollup.result == 'first'
