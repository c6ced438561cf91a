"""
Stream collector - single-pass consumption of a runtime message stream.

Reads raw wire objects in emission order, validates each into a StreamMessage,
drops stream_event messages unless the request asked for them, and returns an
immutable buffer. Message kinds the runtime added after this package was
written are kept as UnknownMessage; only a malformed message of a modeled kind
fails the run.

Cancellation: once the request's token has fired the collector stops reading
and closes the stream. A stream that ends with an error after the token fired
is an early termination, not a failure; the partial buffer is returned with
cancelled=True and downstream formatters treat it like any buffer without a
result message. Every other failure surfaces as RuntimeStreamError. There are
no retries.
"""

from __future__ import annotations

import contextlib
import time
from collections.abc import AsyncIterator, Mapping
from typing import Any

import attrs
import pydantic

from agent_runner.exceptions import RuntimeStreamError
from agent_runner.protocols import LoggerProtocol
from agent_runner.schemas.messages import (
    ResultMessage,
    StreamEventMessage,
    StreamMessage,
    StreamMessageAdapter,
    UnknownMessage,
    describe_message,
)
from agent_runner.services.cancellation import CancellationToken, Clock
from agent_runner.services.request_builder import SessionRequest

__all__ = [
    'CollectedStream',
    'StreamCollector',
]


@attrs.define(frozen=True)
class CollectedStream:
    """Ordered messages observed during one run."""

    messages: tuple[StreamMessage, ...]
    cancelled: bool = False
    elapsed_ms: int = 0

    @property
    def result_seen(self) -> bool:
        return any(isinstance(m, ResultMessage) for m in self.messages)


class StreamCollector:
    """
    Consumes one message stream to completion under a cancellation policy.

    The logger is injected; pass NullLogger for silent collection.
    """

    def __init__(self, logger: LoggerProtocol, clock: Clock = time.monotonic) -> None:
        self.logger = logger
        self._clock = clock

    async def collect(
        self,
        stream: AsyncIterator[Mapping[str, Any]],
        request: SessionRequest,
    ) -> CollectedStream:
        """
        Consume `stream` exactly once.

        Args:
            stream: Raw wire objects produced by the runtime for `request`
            request: The request the stream belongs to (filtering and cancellation policy)

        Returns:
            The collected buffer

        Raises:
            RuntimeStreamError: The stream failed (without cancellation) or sent a malformed message
        """
        options = request.options
        include_partial = bool(options.include_partial_messages)
        token = request.cancellation

        await self.logger.info(
            f'Claude Agent session starting (mode={request.mode}, model={options.model}, '
            f'permission_mode={options.permission_mode})'
        )

        started = self._clock()
        messages: list[StreamMessage] = []
        cancelled = False

        try:
            async with contextlib.aclosing(_guarded(stream, token)) as guarded:
                async for raw in guarded:
                    message = self._parse(raw)

                    if isinstance(message, StreamEventMessage) and not include_partial:
                        pass  # Partial events only when explicitly requested
                    else:
                        messages.append(message)
                        await self.logger.debug(f'Message: {describe_message(message)}')
                        if isinstance(message, UnknownMessage):
                            await self.logger.debug(f'Unrecognized message kind {message.type!r} kept as-is')

                    if token is not None and token.cancelled:
                        cancelled = True
                        await self.logger.warning(
                            f'Cancellation requested ({token.reason}), stopping after {len(messages)} messages'
                        )
                        break
        except _StreamEndedByCancellation as e:
            cancelled = True
            await self.logger.warning(f'Stream ended after cancellation ({e.reason}): {e.__cause__}')

        elapsed_ms = int((self._clock() - started) * 1000)
        collected = CollectedStream(messages=tuple(messages), cancelled=cancelled, elapsed_ms=elapsed_ms)

        await self.logger.info(
            f'Claude Agent session completed (duration_ms={elapsed_ms}, '
            f'message_count={len(collected.messages)}, result_seen={collected.result_seen})'
        )
        return collected

    def _parse(self, raw: Mapping[str, Any]) -> StreamMessage:
        """Validate one wire object (fail fast on malformed modeled kinds)."""
        try:
            return StreamMessageAdapter.validate_python(raw)
        except pydantic.ValidationError as e:
            kind = raw.get('type') if isinstance(raw, Mapping) else type(raw).__name__
            raise RuntimeStreamError(f'Malformed message from agent runtime (type={kind!r}): {e}') from e


# ==============================================================================
# Stream Guard
# ==============================================================================


class _StreamEndedByCancellation(Exception):
    """Internal signal: the stream raised after the token had fired."""

    def __init__(self, reason: str | None) -> None:
        self.reason = reason
        super().__init__(reason)


async def _guarded(
    stream: AsyncIterator[Mapping[str, Any]],
    token: CancellationToken | None,
) -> AsyncIterator[Mapping[str, Any]]:
    """
    Iterate `stream`, classifying its failures and always closing it.

    Errors raised by the stream become _StreamEndedByCancellation when the
    token has fired, RuntimeStreamError otherwise.
    """
    iterator = aiter(stream)
    try:
        while True:
            try:
                raw = await anext(iterator)
            except StopAsyncIteration:
                return
            except Exception as e:
                if token is not None and token.cancelled:
                    raise _StreamEndedByCancellation(token.reason) from e
                if isinstance(e, RuntimeStreamError):
                    raise
                raise RuntimeStreamError(f'Agent stream failed: {e}') from e
            yield raw
    finally:
        aclose = getattr(iterator, 'aclose', None)
        if aclose is not None:
            await aclose()
