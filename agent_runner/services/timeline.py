"""
Turn reconstruction - folds a collected buffer into conversational turns.

A turn opens on every user message the caller authored (synthetic runtime
echoes never open one). Assistant messages that follow feed the open turn:
each text part replaces the turn's assistant text, so the last utterance wins,
and each tool_use part is appended to the turn's tool list. Assistant output
seen before the first turn has nowhere to go and is dropped.

Pure: the same buffer always yields the same turns.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import assert_never

from agent_runner.schemas.messages import (
    AssistantMessage,
    ContentPart,
    DocumentContent,
    ImageContent,
    RedactedThinkingContent,
    ServerToolUseContent,
    StreamMessage,
    TextContent,
    ThinkingContent,
    ToolResultContent,
    ToolUseContent,
    UnknownContent,
    UserMessage,
    WebSearchToolResultContent,
)
from agent_runner.schemas.outputs import ToolInvocation, Turn

__all__ = [
    'extract_user_text',
    'reconstruct_turns',
    'tool_names',
]


class _OpenTurn:
    """Mutable accumulator for the turn currently being built."""

    def __init__(self, number: int, user: str) -> None:
        self.number = number
        self.user = user
        self.assistant = ''
        self.tools: list[ToolInvocation] = []

    def absorb(self, part: ContentPart) -> None:
        match part:
            case TextContent():
                self.assistant = part.text
            case ToolUseContent():
                self.tools.append(ToolInvocation(name=part.name, input=dict(part.input), success=True))
            case (
                ThinkingContent()
                | RedactedThinkingContent()
                | ServerToolUseContent()
                | WebSearchToolResultContent()
                | ToolResultContent()
                | ImageContent()
                | DocumentContent()
                | UnknownContent()
            ):
                pass
            case _:
                assert_never(part)

    def freeze(self) -> Turn:
        return Turn(turn=self.number, user=self.user, assistant=self.assistant, tools=list(self.tools))


def extract_user_text(message: UserMessage) -> str:
    """Plain string content, else the first text part, else ''."""
    content = message.message.content
    if isinstance(content, str):
        return content
    for part in content:
        if isinstance(part, TextContent):
            return part.text
    return ''


def reconstruct_turns(messages: Sequence[StreamMessage]) -> list[Turn]:
    """
    Rebuild the turn sequence from a buffer.

    Args:
        messages: Collected buffer, in emission order

    Returns:
        Turns numbered from 1
    """
    turns: list[_OpenTurn] = []
    current: _OpenTurn | None = None

    for message in messages:
        if isinstance(message, UserMessage):
            if message.is_synthetic:
                continue
            current = _OpenTurn(number=len(turns) + 1, user=extract_user_text(message))
            turns.append(current)
        elif isinstance(message, AssistantMessage) and current is not None:
            for part in message.message.content:
                current.absorb(part)

    return [turn.freeze() for turn in turns]


def tool_names(messages: Sequence[StreamMessage]) -> list[str]:
    """Distinct tool_use names across all assistant messages, in first-seen order."""
    seen: dict[str, None] = {}
    for message in messages:
        if not isinstance(message, AssistantMessage):
            continue
        for part in message.message.content:
            if isinstance(part, ToolUseContent):
                seen.setdefault(part.name, None)
    return list(seen)
