"""Tests for StreamCollector: parsing, filtering, cancellation and failure handling."""

from __future__ import annotations

import pytest

from agent_runner.exceptions import RuntimeStreamError, SessionCancelledError
from agent_runner.protocols import NullLogger
from agent_runner.schemas.messages import (
    AssistantMessage,
    ResultMessage,
    StreamEventMessage,
    SystemInitMessage,
    SystemMessage,
    UnknownContent,
    UnknownMessage,
    UserMessage,
    dump_message,
)
from agent_runner.services.collector import StreamCollector
from agent_runner.services.formatters import format_full, format_summary, format_text
from agent_runner.services.timeline import reconstruct_turns


@pytest.mark.asyncio
async def test_collects_messages_in_emission_order(factory, fake_runtime, make_request) -> None:
    runtime = fake_runtime(
        [
            factory.init(),
            factory.user('fix bug'),
            factory.assistant(factory.text('done')),
            {'type': 'system', 'subtype': 'compact_boundary', 'session_id': factory.session_id},
            factory.result(),
        ]
    )
    request = make_request()

    collected = await StreamCollector(NullLogger()).collect(runtime.stream(request), request)

    assert [type(m) for m in collected.messages] == [
        SystemInitMessage,
        UserMessage,
        AssistantMessage,
        SystemMessage,
        ResultMessage,
    ]
    assert collected.result_seen
    assert not collected.cancelled
    assert runtime.closed


@pytest.mark.asyncio
async def test_stream_events_dropped_by_default(factory, fake_runtime, make_request) -> None:
    runtime = fake_runtime([factory.stream_event(), factory.assistant(factory.text('hi')), factory.stream_event()])
    request = make_request()

    collected = await StreamCollector(NullLogger()).collect(runtime.stream(request), request)

    assert len(collected.messages) == 1
    assert isinstance(collected.messages[0], AssistantMessage)


@pytest.mark.asyncio
async def test_stream_events_kept_on_request(factory, fake_runtime, make_request) -> None:
    runtime = fake_runtime([factory.stream_event(), factory.assistant(factory.text('hi'))])
    request = make_request(advanced={'include_partial_messages': True})

    collected = await StreamCollector(NullLogger()).collect(runtime.stream(request), request)

    assert isinstance(collected.messages[0], StreamEventMessage)
    assert len(collected.messages) == 2


@pytest.mark.asyncio
async def test_unknown_message_type_kept_and_run_still_projects(
    factory, fake_runtime, make_request, recording_logger
) -> None:
    progress = {'type': 'tool_progress', 'tool_use_id': 'toolu_01', 'elapsed_ms': 1200}
    runtime = fake_runtime(
        [
            factory.init(),
            factory.user('fix bug'),
            factory.assistant(factory.text('done')),
            progress,
            factory.result(result='Fixed.'),
        ]
    )
    request = make_request()

    collected = await StreamCollector(recording_logger).collect(runtime.stream(request), request)

    assert isinstance(collected.messages[3], UnknownMessage)
    assert dump_message(collected.messages[3]) == progress
    assert format_text(collected.messages).result == 'Fixed.'
    assert format_summary(collected.messages).conversation.assistant_messages == 1
    assert format_full(collected.messages).messages[3] == progress
    assert "Unrecognized message kind 'tool_progress' kept as-is" in recording_logger.messages('debug')


@pytest.mark.asyncio
async def test_unknown_content_part_kept(factory, fake_runtime, make_request) -> None:
    hologram = {'type': 'hologram', 'data': '...'}
    runtime = fake_runtime(
        [
            factory.user('fix bug'),
            factory.assistant(factory.text('done'), hologram, factory.tool_use('Bash')),
            factory.result(result='Fixed.'),
        ]
    )
    request = make_request()

    collected = await StreamCollector(NullLogger()).collect(runtime.stream(request), request)

    assistant = collected.messages[1]
    assert isinstance(assistant, AssistantMessage)
    assert isinstance(assistant.message.content[1], UnknownContent)
    assert dump_message(assistant)['message']['content'][1] == hologram
    [turn] = reconstruct_turns(collected.messages)
    assert turn.assistant == 'done'
    assert [tool.name for tool in turn.tools] == ['Bash']


@pytest.mark.asyncio
async def test_malformed_known_content_part_fails_fast(factory, fake_runtime, make_request) -> None:
    runtime = fake_runtime([factory.assistant({'type': 'tool_use', 'id': 'toolu_01'})])
    request = make_request()

    with pytest.raises(RuntimeStreamError, match="type='assistant'"):
        await StreamCollector(NullLogger()).collect(runtime.stream(request), request)


@pytest.mark.asyncio
async def test_init_missing_fields_not_downgraded(fake_runtime, make_request) -> None:
    runtime = fake_runtime([{'type': 'system', 'subtype': 'init', 'session_id': 'abc'}])
    request = make_request()

    with pytest.raises(RuntimeStreamError):
        await StreamCollector(NullLogger()).collect(runtime.stream(request), request)


@pytest.mark.asyncio
async def test_runtime_failure_wrapped_and_chained(factory, fake_runtime, make_request) -> None:
    boom = OSError('pipe closed')
    runtime = fake_runtime([factory.init()], error=boom)
    request = make_request()

    with pytest.raises(RuntimeStreamError, match='pipe closed') as exc_info:
        await StreamCollector(NullLogger()).collect(runtime.stream(request), request)

    assert exc_info.value.__cause__ is boom


@pytest.mark.asyncio
async def test_runtime_stream_error_propagates_unchanged(fake_runtime, make_request) -> None:
    error = RuntimeStreamError('exited with code 1')
    runtime = fake_runtime([], error=error)
    request = make_request()

    with pytest.raises(RuntimeStreamError) as exc_info:
        await StreamCollector(NullLogger()).collect(runtime.stream(request), request)

    assert exc_info.value is error


@pytest.mark.asyncio
async def test_cancellation_returns_partial_buffer(factory, fake_runtime, make_request) -> None:
    runtime = fake_runtime(
        [factory.init(), factory.user('x'), factory.assistant(factory.text('a')), factory.result()],
        cancel_at=1,
    )
    request = make_request(timeout=3600)

    collected = await StreamCollector(NullLogger()).collect(runtime.stream(request), request)

    assert collected.cancelled
    assert len(collected.messages) == 2
    assert not collected.result_seen
    assert runtime.closed


@pytest.mark.asyncio
async def test_error_after_cancellation_is_early_termination(fake_runtime, make_request) -> None:
    request = make_request(timeout=3600)
    assert request.cancellation is not None
    request.cancellation.cancel('timeout')
    runtime = fake_runtime([], error=SessionCancelledError('timeout'))

    collected = await StreamCollector(NullLogger()).collect(runtime.stream(request), request)

    assert collected.cancelled
    assert collected.messages == ()


@pytest.mark.asyncio
async def test_logs_start_each_message_and_completion(factory, fake_runtime, make_request, recording_logger) -> None:
    runtime = fake_runtime([factory.init(), factory.assistant(factory.text('hi')), factory.result()])
    request = make_request(operation='resume', session_id='abc', model='opus')

    await StreamCollector(recording_logger).collect(runtime.stream(request), request)

    info = recording_logger.messages('info')
    assert info[0] == 'Claude Agent session starting (mode=resume, model=opus, permission_mode=bypassPermissions)'
    assert 'message_count=3' in info[-1]
    assert 'result_seen=True' in info[-1]
    assert recording_logger.messages('debug') == [
        'Message: system/init',
        'Message: assistant',
        'Message: result/success',
    ]


@pytest.mark.asyncio
async def test_logging_does_not_change_buffer(factory, fake_runtime, make_request, recording_logger) -> None:
    messages = [factory.init(), factory.user('q'), factory.assistant(factory.text('a')), factory.result()]
    request = make_request()

    quiet = await StreamCollector(NullLogger()).collect(fake_runtime(messages).stream(request), request)
    loud = await StreamCollector(recording_logger).collect(fake_runtime(messages).stream(request), request)

    assert quiet.messages == loud.messages


@pytest.mark.asyncio
async def test_elapsed_time_from_injected_clock(factory, fake_runtime, make_request) -> None:
    ticks = iter([10.0, 12.5])
    request = make_request()

    collected = await StreamCollector(NullLogger(), clock=lambda: next(ticks)).collect(
        fake_runtime([factory.result()]).stream(request), request
    )

    assert collected.elapsed_ms == 2500
