"""
Batch runner - per-item orchestration.

For each item, in order: validate its configuration, build the session request,
open the runtime stream, collect it and format the requested projection.

Items never share state: every run gets a fresh collector and a fresh buffer.
Debug logging is opt-in per item (advanced.debug); all other items run with a
NullLogger so the aggregation path stays silent.

Failure policy:
- continue_on_fail=False: the first AgentRunnerError aborts the batch
- continue_on_fail=True: the failed item yields {'error': ..., 'itemIndex': i}
  and the batch moves on
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from typing import Any

import pydantic

from agent_runner.config import settings
from agent_runner.exceptions import AgentRunnerError, ValidationError
from agent_runner.protocols import AgentRuntime, LoggerProtocol, NullLogger
from agent_runner.schemas.outputs import OutputRecord
from agent_runner.schemas.request import SessionConfig
from agent_runner.services.cancellation import Clock
from agent_runner.services.collector import StreamCollector
from agent_runner.services.formatters import format_projection
from agent_runner.services.request_builder import SessionRequestBuilder

__all__ = [
    'AgentBatchRunner',
    'parse_config',
]


def parse_config(item: SessionConfig | Mapping[str, Any]) -> SessionConfig:
    """
    Validate one item's configuration, filling model and permission mode from settings.

    Raises:
        ValidationError: The item does not describe a valid SessionConfig
    """
    if isinstance(item, SessionConfig):
        return item

    defaults = {
        'model': settings.DEFAULT_MODEL,
        'permission_mode': settings.DEFAULT_PERMISSION_MODE,
    }
    try:
        return SessionConfig.model_validate({**defaults, **item})
    except pydantic.ValidationError as e:
        raise ValidationError(f'Invalid item configuration: {e}') from e


class AgentBatchRunner:
    """Runs a sequence of items against one agent runtime."""

    def __init__(
        self,
        runtime: AgentRuntime,
        logger: LoggerProtocol,
        builder: SessionRequestBuilder | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        """
        Args:
            runtime: Produces the message stream for each request
            logger: Debug channel for items that enable advanced.debug
            builder: Request builder (default: one sharing `clock`)
            clock: Time source for timeouts and durations
        """
        self.runtime = runtime
        self.logger = logger
        self.builder = builder or SessionRequestBuilder(clock=clock)
        self._clock = clock

    async def run(
        self,
        items: Sequence[SessionConfig | Mapping[str, Any]],
        continue_on_fail: bool = False,
    ) -> list[OutputRecord]:
        """
        Run every item sequentially.

        Args:
            items: Item configurations, in order
            continue_on_fail: Emit an error record instead of aborting on failure

        Returns:
            One record per item, in input order

        Raises:
            AgentRunnerError: First failure, when continue_on_fail is False
        """
        records: list[OutputRecord] = []

        for item_index, item in enumerate(items):
            try:
                records.append(await self.run_item(item, item_index))
            except AgentRunnerError as e:
                if not continue_on_fail:
                    raise
                await self.logger.warning(f'Item {item_index} failed: {e}')
                records.append(OutputRecord(item_index=item_index, data={'error': str(e), 'itemIndex': item_index}))

        return records

    async def run_item(self, item: SessionConfig | Mapping[str, Any], item_index: int = 0) -> OutputRecord:
        """
        Run one item end to end.

        Raises:
            ValidationError: Invalid configuration (no stream is opened)
            RuntimeStreamError: The stream failed
        """
        config = parse_config(item)
        logger = self.logger if config.advanced.debug else NullLogger()

        request = self.builder.build(config)
        collector = StreamCollector(logger, clock=self._clock)

        try:
            collected = await collector.collect(self.runtime.stream(request), request)
        except AgentRunnerError as e:
            await logger.error(f'Claude Agent execution failed: {e}')
            raise

        projection = format_projection(config.output_format, collected.messages)
        return OutputRecord(item_index=item_index, data=projection.model_dump(mode='json'))
