"""
Replay runtime - feeds a captured stream-json transcript back as a message stream.

The transcript is the JSONL that `claude -p --output-format stream-json --verbose`
writes to stdout: one wire message per line, blank lines ignored. Useful for
reformatting a finished run and for exercising the pipeline without the agent.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Mapping
from pathlib import Path
from typing import Any

from agent_runner.exceptions import RuntimeStreamError, SessionCancelledError
from agent_runner.services.request_builder import SessionRequest


class ReplayRuntime:
    """Agent runtime that replays a transcript file instead of running the agent."""

    def __init__(self, path: Path) -> None:
        self.path = path

    async def stream(self, request: SessionRequest) -> AsyncIterator[Mapping[str, Any]]:
        """
        Yield the transcript's messages in file order.

        The request only contributes its cancellation token; prompt and options
        are ignored because the run already happened.

        Raises:
            RuntimeStreamError: File missing or a line is not valid JSON
            SessionCancelledError: The token fired before the transcript ended
        """
        if not self.path.is_file():
            raise RuntimeStreamError(f'Transcript not found: {self.path}')

        token = request.cancellation

        with open(self.path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                if token is not None and token.cancelled:
                    raise SessionCancelledError(token.reason or 'cancelled')

                line = line.strip()
                if not line:
                    continue

                try:
                    raw = json.loads(line)
                except json.JSONDecodeError as e:
                    raise RuntimeStreamError(f'{self.path.name}:{line_num}: invalid JSON: {e}') from e

                yield raw
