"""
Shared pytest fixtures for claude-agent-runner tests.

Provides:
- MessageFactory: builds stream-json wire objects as the CLI emits them
- FakeRuntime: an AgentRuntime that replays canned wire objects
- RecordingLogger: a LoggerProtocol that keeps every message
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from agent_runner.schemas.request import SessionConfig
from agent_runner.services.request_builder import SessionRequest, SessionRequestBuilder

FIXTURES_DIR = Path(__file__).parent / 'fixtures'

SESSION_ID = '5d2c1f0e-8a7b-4c3d-9e1f-000000000001'


# ==============================================================================
# Wire Message Factory
# ==============================================================================


class MessageFactory:
    """Builds raw wire objects. Every method returns a fresh dict."""

    session_id = SESSION_ID

    def init(self, model: str = 'sonnet', **overrides: Any) -> dict[str, Any]:
        return {
            'type': 'system',
            'subtype': 'init',
            'session_id': self.session_id,
            'model': model,
            'permissionMode': 'bypassPermissions',
            'cwd': '/work/project',
            'tools': ['Bash', 'Read', 'Edit'],
            'mcp_servers': [{'name': 'github', 'status': 'connected'}],
            'uuid': 'c0ffee00-0000-0000-0000-000000000000',
            **overrides,
        }

    def user(self, content: str | list[dict[str, Any]], **overrides: Any) -> dict[str, Any]:
        return {
            'type': 'user',
            'message': {'role': 'user', 'content': content},
            'session_id': self.session_id,
            'parent_tool_use_id': None,
            **overrides,
        }

    def tool_result(self, tool_use_id: str, content: str = 'ok') -> dict[str, Any]:
        """Runtime echo of a tool's output (synthetic user message)."""
        return self.user([{'type': 'tool_result', 'tool_use_id': tool_use_id, 'content': content}])

    def assistant(self, *parts: dict[str, Any]) -> dict[str, Any]:
        return {
            'type': 'assistant',
            'message': {
                'role': 'assistant',
                'model': 'claude-sonnet-4-5',
                'id': 'msg_01',
                'content': list(parts),
            },
            'session_id': self.session_id,
            'parent_tool_use_id': None,
        }

    def text(self, text: str) -> dict[str, Any]:
        return {'type': 'text', 'text': text}

    def tool_use(self, name: str, input: dict[str, Any] | None = None, id: str = 'toolu_01') -> dict[str, Any]:
        return {'type': 'tool_use', 'id': id, 'name': name, 'input': input or {}}

    def thinking(self, thinking: str) -> dict[str, Any]:
        return {'type': 'thinking', 'thinking': thinking, 'signature': 'sig'}

    def result(self, subtype: str = 'success', result: str | None = 'Done.', **overrides: Any) -> dict[str, Any]:
        message: dict[str, Any] = {
            'type': 'result',
            'subtype': subtype,
            'session_id': self.session_id,
            'is_error': subtype != 'success',
            'num_turns': 1,
            'duration_ms': 4200,
            'duration_api_ms': 3100,
            'total_cost_usd': 0.0123,
            'usage': {
                'input_tokens': 120,
                'output_tokens': 45,
                'cache_creation_input_tokens': 10,
                'cache_read_input_tokens': 2000,
            },
            'modelUsage': {
                'claude-sonnet-4-5': {
                    'inputTokens': 120,
                    'outputTokens': 45,
                    'cacheReadInputTokens': 2000,
                    'cacheCreationInputTokens': 10,
                    'webSearchRequests': 0,
                    'costUSD': 0.0123,
                },
            },
            'permission_denials': [],
        }
        if result is not None:
            message['result'] = result
        message.update(overrides)
        return message

    def stream_event(self) -> dict[str, Any]:
        return {
            'type': 'stream_event',
            'event': {'type': 'content_block_delta', 'index': 0, 'delta': {'type': 'text_delta', 'text': 'Hel'}},
            'session_id': self.session_id,
            'parent_tool_use_id': None,
        }


# ==============================================================================
# Fakes
# ==============================================================================


class FakeRuntime:
    """
    AgentRuntime that yields canned wire objects for every request.

    Args:
        messages: Objects yielded for each stream() call
        error: Raised after the messages have been yielded
        cancel_at: Fire the request's token just before yielding this index
    """

    def __init__(
        self,
        messages: Sequence[Mapping[str, Any]] = (),
        error: Exception | None = None,
        cancel_at: int | None = None,
    ) -> None:
        self.messages = list(messages)
        self.error = error
        self.cancel_at = cancel_at
        self.requests: list[SessionRequest] = []
        self.closed = False

    async def stream(self, request: SessionRequest) -> AsyncIterator[Mapping[str, Any]]:
        self.requests.append(request)
        try:
            for index, message in enumerate(self.messages):
                if index == self.cancel_at and request.cancellation is not None:
                    request.cancellation.cancel('test')
                yield message
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


class RecordingLogger:
    """LoggerProtocol implementation that records (level, message) pairs."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str]] = []

    async def info(self, message: str) -> None:
        self.records.append(('info', message))

    async def debug(self, message: str) -> None:
        self.records.append(('debug', message))

    async def warning(self, message: str) -> None:
        self.records.append(('warning', message))

    async def error(self, message: str) -> None:
        self.records.append(('error', message))

    def messages(self, level: str) -> list[str]:
        return [message for lvl, message in self.records if lvl == level]


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def factory() -> MessageFactory:
    return MessageFactory()


@pytest.fixture
def fake_runtime() -> type[FakeRuntime]:
    return FakeRuntime


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def make_request() -> Callable[..., SessionRequest]:
    """Build a SessionRequest from SessionConfig fields (prompt defaults to 'hello')."""

    def _make(**fields: Any) -> SessionRequest:
        fields.setdefault('prompt', 'hello')
        return SessionRequestBuilder().build(SessionConfig.model_validate(fields))

    return _make


@pytest.fixture
def transcript_path() -> Path:
    """Captured stream-json transcript of a one-turn run that used Bash."""
    return FIXTURES_DIR / 'bash_fix_success.jsonl'


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's LOAD_ENV_FILE from leaking into tests."""
    monkeypatch.delenv('LOAD_ENV_FILE', raising=False)
