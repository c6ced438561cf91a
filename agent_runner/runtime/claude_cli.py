"""
Claude Code CLI runtime.

Runs `claude -p --output-format stream-json --verbose` as a subprocess and
yields one decoded JSON object per stdout line.

Request mapping:
- prompt is written to stdin (keeps variadic flags like --add-dir unambiguous)
- options map 1:1 onto CLI flags; unset options add no flag
- max_thinking_tokens is passed through the MAX_THINKING_TOKENS environment variable
- cwd becomes the subprocess working directory

When the request's cancellation token fires, the whole process tree
(claude plus any tool subprocesses) is terminated; the stream then ends with
SessionCancelledError.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
from collections.abc import AsyncIterator, Mapping
from typing import Any

import psutil

from agent_runner.config import settings
from agent_runner.exceptions import RuntimeNotFoundError, RuntimeStreamError, SessionCancelledError
from agent_runner.schemas.request import SessionRequestOptions
from agent_runner.services.cancellation import CancellationToken
from agent_runner.services.request_builder import SessionRequest

__all__ = [
    'ClaudeCliRuntime',
]

logger = logging.getLogger(__name__)

# Stderr kept for error messages
STDERR_TAIL_CHARS = 2000


class ClaudeCliRuntime:
    """Agent runtime backed by the claude CLI in stream-json mode."""

    def __init__(
        self,
        executable: str | None = None,
        *,
        line_limit: int | None = None,
        terminate_grace: float | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        """
        Args:
            executable: CLI name or path (default: CLAUDE_EXECUTABLE setting)
            line_limit: Max bytes per stdout line (default: STREAM_LINE_LIMIT setting)
            terminate_grace: Seconds between SIGTERM and SIGKILL (default: TERMINATE_GRACE_SECONDS setting)
            base_env: Environment for the subprocess (default: current environment)
        """
        self.executable = executable or settings.CLAUDE_EXECUTABLE
        self.line_limit = line_limit or settings.STREAM_LINE_LIMIT
        self.terminate_grace = settings.TERMINATE_GRACE_SECONDS if terminate_grace is None else terminate_grace
        self.base_env = dict(os.environ if base_env is None else base_env)

    # ==========================================================================
    # Request Mapping
    # ==========================================================================

    def build_argv(self, options: SessionRequestOptions) -> list[str]:
        """CLI arguments (without the executable) for a request's options."""
        argv = [
            '-p',
            '--output-format',
            'stream-json',
            '--verbose',
            '--model',
            options.model,
            '--permission-mode',
            options.permission_mode,
        ]

        if options.continue_session:
            argv.append('--continue')
        if options.resume is not None:
            argv.extend(['--resume', options.resume])
        if options.fork_session:
            argv.append('--fork-session')

        if options.max_turns is not None:
            argv.extend(['--max-turns', str(options.max_turns)])

        if options.system_prompt is not None:
            argv.extend(['--system-prompt', options.system_prompt])
        if options.append_system_prompt is not None:
            argv.extend(['--append-system-prompt', options.append_system_prompt])

        if options.fallback_model is not None:
            argv.extend(['--fallback-model', options.fallback_model])

        if options.allowed_tools is not None:
            argv.extend(['--allowedTools', ','.join(options.allowed_tools)])
        if options.disallowed_tools is not None:
            argv.extend(['--disallowedTools', ','.join(options.disallowed_tools)])
        if options.additional_directories is not None:
            argv.extend(['--add-dir', *options.additional_directories])

        if options.include_partial_messages:
            argv.append('--include-partial-messages')

        return argv

    def build_env(self, options: SessionRequestOptions) -> dict[str, str]:
        """Subprocess environment for a request's options."""
        env = dict(self.base_env)
        if options.max_thinking_tokens is not None:
            env['MAX_THINKING_TOKENS'] = str(options.max_thinking_tokens)
        return env

    def resolve_executable(self) -> str:
        """
        Absolute path of the CLI.

        Raises:
            RuntimeNotFoundError: If the executable is not on PATH
        """
        path = shutil.which(self.executable, path=self.base_env.get('PATH'))
        if not path:
            raise RuntimeNotFoundError(self.executable)
        return path

    # ==========================================================================
    # Streaming
    # ==========================================================================

    async def stream(self, request: SessionRequest) -> AsyncIterator[Mapping[str, Any]]:
        """
        Run the CLI for `request` and yield its messages in order.

        Raises:
            RuntimeNotFoundError: CLI not installed
            SessionCancelledError: Process ended early because the token fired
            RuntimeStreamError: Non-JSON output or non-zero exit
        """
        options = request.options
        executable = self.resolve_executable()
        argv = self.build_argv(options)

        proc = await asyncio.create_subprocess_exec(
            executable,
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=options.cwd,
            env=self.build_env(options),
            limit=self.line_limit,
        )
        assert proc.stdin is not None and proc.stdout is not None and proc.stderr is not None
        logger.debug(f'Started {executable} (pid {proc.pid}) in mode {request.mode}')

        stderr_task = asyncio.create_task(proc.stderr.read())
        watcher = None
        if request.cancellation is not None:
            watcher = asyncio.create_task(self._terminate_on_cancel(proc, request.cancellation))

        try:
            proc.stdin.write(request.prompt.encode('utf-8'))
            await proc.stdin.drain()
            proc.stdin.close()

            async for line in proc.stdout:
                line = line.strip()
                if not line:
                    continue
                try:
                    message = json.loads(line)
                except json.JSONDecodeError as e:
                    raise RuntimeStreamError(f'Invalid JSON from agent runtime: {line[:200]!r}') from e
                yield message

            returncode = await proc.wait()
        finally:
            if watcher is not None:
                if request.cancellation is not None and request.cancellation.cancelled:
                    await watcher  # Let an in-flight termination finish
                else:
                    watcher.cancel()
            if proc.returncode is None:
                # Consumer stopped early or an error occurred mid-stream
                await self._terminate(proc)
            stderr = (await stderr_task).decode('utf-8', errors='replace')

        if returncode != 0:
            token = request.cancellation
            if token is not None and token.cancelled:
                raise SessionCancelledError(token.reason or 'cancelled')
            raise RuntimeStreamError(
                f'Agent runtime exited with code {returncode}: {stderr[-STDERR_TAIL_CHARS:].strip()}'
            )

    async def _terminate_on_cancel(self, proc: asyncio.subprocess.Process, token: CancellationToken) -> None:
        reason = await token.wait()
        if proc.returncode is None:
            logger.info(f'Cancellation ({reason}): terminating agent process tree (pid {proc.pid})')
            await self._terminate(proc)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """
        SIGTERM the agent and its descendants, SIGKILL whatever survives the grace period.

        The agent itself is awaited through asyncio (it is our child); descendants
        are polled through psutil.
        """
        descendants = await asyncio.to_thread(_descendants, proc.pid)

        try:
            proc.terminate()
        except ProcessLookupError:
            pass
        _signal_all(descendants, kill=False)

        try:
            await asyncio.wait_for(proc.wait(), timeout=self.terminate_grace)
        except TimeoutError:
            logger.warning(f'Agent process {proc.pid} ignored SIGTERM, killing')
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()

        await asyncio.to_thread(_reap, descendants, self.terminate_grace)


# ==============================================================================
# Process Tree Helpers (blocking)
# ==============================================================================


def _descendants(pid: int) -> list[psutil.Process]:
    try:
        return psutil.Process(pid).children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return []


def _signal_all(processes: list[psutil.Process], kill: bool) -> None:
    for process in processes:
        try:
            if kill:
                process.kill()
            else:
                process.terminate()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass


def _reap(processes: list[psutil.Process], grace_seconds: float) -> None:
    """Wait for already-signalled processes, SIGKILL the ones still alive."""
    if not processes:
        return
    _gone, alive = psutil.wait_procs(processes, timeout=grace_seconds)
    if alive:
        logger.warning(f'Killing {len(alive)} agent subprocess(es) that ignored SIGTERM')
        _signal_all(alive, kill=True)
