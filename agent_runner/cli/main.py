#!/usr/bin/env python3
"""
Command-line interface for claude-agent-runner.

Provides commands to run Claude agent sessions and to reformat captured
stream-json transcripts.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Literal

import typer

from agent_runner.cli.logger import CLILogger
from agent_runner.config import settings
from agent_runner.exceptions import AgentRunnerError
from agent_runner.runtime.claude_cli import ClaudeCliRuntime
from agent_runner.runtime.replay import ReplayRuntime
from agent_runner.schemas.request import SessionRequestOptions
from agent_runner.schemas.types import OutputFormat, PermissionMode, SessionMode, SystemPromptMode
from agent_runner.services.collector import StreamCollector
from agent_runner.services.formatters import format_projection
from agent_runner.services.request_builder import SessionRequest
from agent_runner.services.runner import AgentBatchRunner

app = typer.Typer(
    name='claude-agent',
    help='Run Claude agent sessions and aggregate their message streams',
    add_completion=False,
)


def _fail(message: str) -> typer.Exit:
    typer.secho(f'Error: {message}', fg=typer.colors.RED, err=True)
    return typer.Exit(1)


# ==============================================================================
# run
# ==============================================================================


@app.command()
def run(
    prompt: str = typer.Argument(..., help='Prompt to send to Claude'),
    operation: SessionMode = typer.Option('new', '--operation', '-o', help='new, continue, resume or fork'),
    session_id: str = typer.Option('', '--session-id', '-s', help='Session to resume or fork'),
    cwd: str = typer.Option('', '--cwd', help='Working directory for the agent'),
    model: str | None = typer.Option(None, '--model', '-m', help='Model alias or name (default: DEFAULT_MODEL)'),
    permission_mode: PermissionMode | None = typer.Option(
        None, '--permission-mode', help='Permission mode (default: DEFAULT_PERMISSION_MODE)'
    ),
    max_turns: int = typer.Option(0, '--max-turns', help='Maximum conversation turns (0 = unlimited)'),
    timeout: float = typer.Option(0, '--timeout', help='Seconds before the run is cancelled (0 = none)'),
    format: OutputFormat = typer.Option('summary', '--format', '-f', help='Output format: text, summary or full'),
    system_prompt_mode: SystemPromptMode = typer.Option(
        'default', '--system-prompt-mode', help='default, append or custom'
    ),
    system_prompt: str = typer.Option('', '--system-prompt', help='Text for append/custom system prompt mode'),
    fallback_model: str = typer.Option('', '--fallback-model', help='Model to use when the primary is overloaded'),
    max_thinking_tokens: int = typer.Option(0, '--max-thinking-tokens', help='Thinking budget (0 = default)'),
    allowed_tools: list[str] | None = typer.Option(None, '--allowed-tool', help='Allowed tool (repeatable)'),
    disallowed_tools: list[str] | None = typer.Option(None, '--disallowed-tool', help='Disallowed tool (repeatable)'),
    add_dirs: list[str] | None = typer.Option(None, '--add-dir', help='Additional directory (repeatable)'),
    include_partial: bool = typer.Option(False, '--include-partial', help='Keep stream_event messages'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Log session progress to stderr'),
) -> None:
    """
    Run a single agent session and print its projection as JSON.

    Examples:
        claude-agent run "Summarize README.md" --format text
        claude-agent run "Now add tests" --operation continue
        claude-agent run "Try another approach" -o fork -s 0f3c...
    """
    item: dict[str, Any] = {
        'operation': operation,
        'prompt': prompt,
        'session_id': session_id,
        'cwd': cwd,
        'max_turns': max_turns,
        'timeout': timeout,
        'output_format': format,
        'advanced': {
            'system_prompt_mode': system_prompt_mode,
            'custom_system_prompt': system_prompt if system_prompt_mode == 'custom' else '',
            'append_system_prompt': system_prompt if system_prompt_mode == 'append' else '',
            'fallback_model': fallback_model,
            'max_thinking_tokens': max_thinking_tokens,
            'allowed_tools': allowed_tools or [],
            'disallowed_tools': disallowed_tools or [],
            'additional_directories': add_dirs or [],
            'debug': verbose,
            'include_partial_messages': include_partial,
        },
    }
    if model is not None:
        item['model'] = model
    if permission_mode is not None:
        item['permission_mode'] = permission_mode

    asyncio.run(_run_async(item, verbose))


async def _run_async(item: dict[str, Any], verbose: bool) -> None:
    """Async implementation of run command."""
    runner = AgentBatchRunner(ClaudeCliRuntime(), CLILogger(verbose=verbose))

    try:
        record = await runner.run_item(item)
    except AgentRunnerError as e:
        raise _fail(str(e))

    typer.echo(json.dumps(record.data, indent=2))


# ==============================================================================
# batch
# ==============================================================================


def load_items(path: Path) -> list[dict[str, Any]]:
    """
    Read item configurations from a JSON array file or a JSONL file.

    Raises:
        ValueError: Content is neither a JSON array nor JSONL of objects
    """
    text = path.read_text(encoding='utf-8')

    if text.lstrip().startswith('['):
        items = json.loads(text)
    else:
        items = [json.loads(line) for line in text.splitlines() if line.strip()]

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f'Item {index} is not a JSON object')
    return items


@app.command()
def batch(
    items_file: Path = typer.Argument(..., help='JSON array or JSONL file of item configurations'),
    continue_on_fail: bool = typer.Option(
        False, '--continue-on-fail', help='Emit an error record for a failed item instead of stopping'
    ),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Log warnings for failed items'),
) -> None:
    """
    Run every item in a file sequentially, printing one JSON record per line.

    Per-item debug logging is enabled with "advanced": {"debug": true}.

    Examples:
        claude-agent batch items.jsonl
        claude-agent batch items.json --continue-on-fail
    """
    asyncio.run(_batch_async(items_file, continue_on_fail, verbose))


async def _batch_async(items_file: Path, continue_on_fail: bool, verbose: bool) -> None:
    """Async implementation of batch command."""
    try:
        items = load_items(items_file)
    except (OSError, ValueError) as e:
        raise _fail(f'Cannot read {items_file}: {e}')

    runner = AgentBatchRunner(ClaudeCliRuntime(), CLILogger(verbose=verbose))

    try:
        records = await runner.run(items, continue_on_fail=continue_on_fail)
    except AgentRunnerError as e:
        raise _fail(str(e))

    for record in records:
        typer.echo(record.model_dump_json())


# ==============================================================================
# replay
# ==============================================================================


@app.command()
def replay(
    transcript: Path = typer.Argument(..., help='Captured stream-json (JSONL) transcript'),
    format: OutputFormat = typer.Option('summary', '--format', '-f', help='Output format: text, summary or full'),
    include_partial: bool = typer.Option(False, '--include-partial', help='Keep stream_event messages'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Log each message to stderr'),
) -> None:
    """
    Format a captured transcript without running the agent.

    Capture one with: claude -p "..." --output-format stream-json --verbose > run.jsonl

    Examples:
        claude-agent replay run.jsonl
        claude-agent replay run.jsonl --format full
    """
    asyncio.run(_replay_async(transcript, format, include_partial, verbose))


async def _replay_async(transcript: Path, format: OutputFormat, include_partial: bool, verbose: bool) -> None:
    """Async implementation of replay command."""
    request = SessionRequest(
        prompt='',
        mode='new',
        options=SessionRequestOptions(
            model=settings.DEFAULT_MODEL,
            permission_mode=settings.DEFAULT_PERMISSION_MODE,
            include_partial_messages=True if include_partial else None,
        ),
    )
    collector = StreamCollector(CLILogger(verbose=verbose))

    try:
        collected = await collector.collect(ReplayRuntime(transcript).stream(request), request)
    except AgentRunnerError as e:
        raise _fail(str(e))

    projection = format_projection(format, collected.messages)
    typer.echo(json.dumps(projection.model_dump(mode='json'), indent=2))


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()
