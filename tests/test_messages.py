"""Tests for the stream-json message models."""

from __future__ import annotations

import pydantic
import pytest

from agent_runner.schemas.messages import (
    AssistantMessage,
    ResultMessage,
    StreamMessageAdapter,
    SystemInitMessage,
    SystemMessage,
    ToolUseContent,
    UnknownMessage,
    describe_message,
    dump_message,
)


def test_init_matches_before_generic_system(factory) -> None:
    message = StreamMessageAdapter.validate_python(factory.init())

    assert isinstance(message, SystemInitMessage)
    assert [s.name for s in message.mcp_servers] == ['github']


def test_other_system_subtypes_are_generic(factory) -> None:
    message = StreamMessageAdapter.validate_python({'type': 'system', 'subtype': 'compact_boundary'})

    assert isinstance(message, SystemMessage)
    assert describe_message(message) == 'system/compact_boundary'


def test_incomplete_init_rejected() -> None:
    with pytest.raises(pydantic.ValidationError):
        StreamMessageAdapter.validate_python({'type': 'system', 'subtype': 'init', 'session_id': 's'})


@pytest.mark.parametrize(
    ('content', 'flagged', 'expected'),
    [
        ('plain prompt', None, False),
        ([{'type': 'text', 'text': 'hi'}], None, False),
        ([{'type': 'tool_result', 'tool_use_id': 't1', 'content': 'ok'}], None, True),
        ([{'type': 'tool_result', 'tool_use_id': 't1'}, {'type': 'text', 'text': 'note'}], None, False),
        ([], None, False),
        ('Caveat: generated by a local command', True, True),
    ],
)
def test_synthetic_detection(factory, content, flagged, expected) -> None:
    raw = factory.user(content) if flagged is None else factory.user(content, isSynthetic=flagged)

    assert StreamMessageAdapter.validate_python(raw).is_synthetic is expected


def test_assistant_parts_are_typed(factory) -> None:
    message = StreamMessageAdapter.validate_python(
        factory.assistant(factory.thinking('plan'), factory.tool_use('Bash', {'command': 'ls'}))
    )

    assert isinstance(message, AssistantMessage)
    tool = message.message.content[1]
    assert isinstance(tool, ToolUseContent)
    assert tool.input == {'command': 'ls'}


def test_result_without_optional_sections(factory) -> None:
    message = StreamMessageAdapter.validate_python({'type': 'result', 'subtype': 'error_during_execution'})

    assert isinstance(message, ResultMessage)
    assert message.usage is None
    assert message.modelUsage is None
    assert message.permission_denials == ()


def test_unknown_envelope_fields_survive_round_trip(factory) -> None:
    raw = factory.init(output_style='default', slash_commands=['compact'])

    message = StreamMessageAdapter.validate_python(raw)

    assert message.get_extra_fields()['slash_commands'] == ['compact']
    assert dump_message(message) == raw


def test_unmodeled_kind_falls_through_to_unknown_message() -> None:
    raw = {'type': 'tool_progress', 'subtype': 'tick', 'elapsed_ms': 800}

    message = StreamMessageAdapter.validate_python(raw)

    assert isinstance(message, UnknownMessage)
    assert describe_message(message) == 'tool_progress/tick'
    assert dump_message(message) == raw


@pytest.mark.parametrize(
    'raw',
    [
        {'type': 'user', 'message': {'role': 'user'}},
        {'type': 'assistant'},
        {'type': 'result'},
    ],
)
def test_malformed_modeled_kind_is_not_downgraded(raw) -> None:
    with pytest.raises(pydantic.ValidationError):
        StreamMessageAdapter.validate_python(raw)
