"""
Session request builder.

Turns a declarative SessionConfig into exactly one normalized SessionRequest,
or raises ValidationError before any stream is opened.

Normalization rules:
- Prompt must be non-blank (checked before anything else)
- resume/fork need a non-blank session ID; fork also asks for a new session ID
- Limits are set only when strictly positive; zero means "no limit" and is omitted
- Blank strings and empty lists are treated as unset, never forwarded
- A positive timeout attaches a CancellationToken; the builder never polls it
"""

from __future__ import annotations

import time
from collections.abc import Sequence

import attrs

from agent_runner.exceptions import ValidationError
from agent_runner.schemas.request import AdvancedOptions, SessionConfig, SessionRequestOptions
from agent_runner.schemas.types import SessionMode
from agent_runner.services.cancellation import CancellationToken, Clock

__all__ = [
    'SessionRequest',
    'SessionRequestBuilder',
]


@attrs.define(frozen=True)
class SessionRequest:
    """One outbound request to the agent runtime."""

    prompt: str
    mode: SessionMode
    options: SessionRequestOptions
    cancellation: CancellationToken | None = None


class SessionRequestBuilder:
    """Builds normalized session requests from item configuration."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        """
        Args:
            clock: Time source for timeout tokens (injectable for tests)
        """
        self._clock = clock

    def build(self, config: SessionConfig) -> SessionRequest:
        """
        Build the request for one item.

        Args:
            config: Validated item configuration

        Returns:
            Normalized request, with a cancellation token if a timeout was given

        Raises:
            ValidationError: Blank prompt, or blank session ID for resume/fork
        """
        prompt = config.prompt
        if not prompt.strip():
            raise ValidationError('Prompt is required')

        continuation = self._continuation(config.operation, config.session_id)
        advanced = config.advanced

        options = SessionRequestOptions(
            model=config.model,
            permission_mode=config.permission_mode,
            cwd=_non_blank(config.cwd),
            **continuation,
            max_turns=_positive(config.max_turns),
            max_thinking_tokens=_positive(advanced.max_thinking_tokens),
            **self._system_prompt(advanced),
            fallback_model=_non_blank(advanced.fallback_model),
            allowed_tools=_non_empty(advanced.allowed_tools),
            disallowed_tools=_non_empty(advanced.disallowed_tools),
            additional_directories=_clean_directories(advanced.additional_directories),
            include_partial_messages=True if advanced.include_partial_messages else None,
        )

        cancellation = None
        if config.timeout > 0:
            cancellation = CancellationToken.after(config.timeout, clock=self._clock)

        return SessionRequest(
            prompt=prompt,
            mode=config.operation,
            options=options,
            cancellation=cancellation,
        )

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _continuation(self, mode: SessionMode, session_id: str) -> dict[str, str | bool]:
        """Continuation options for a session mode."""
        match mode:
            case 'new':
                return {}
            case 'continue':
                return {'continue_session': True}
            case 'resume':
                return {'resume': self._require_session_id(mode, session_id)}
            case 'fork':
                return {'resume': self._require_session_id(mode, session_id), 'fork_session': True}

    def _require_session_id(self, mode: SessionMode, session_id: str) -> str:
        stripped = session_id.strip()
        if not stripped:
            raise ValidationError(f'Session ID is required for {mode} operation')
        return stripped

    def _system_prompt(self, advanced: AdvancedOptions) -> dict[str, str]:
        """System prompt override; blank text falls back to the runtime default."""
        match advanced.system_prompt_mode:
            case 'custom':
                text = _non_blank(advanced.custom_system_prompt)
                return {'system_prompt': text} if text else {}
            case 'append':
                text = _non_blank(advanced.append_system_prompt)
                return {'append_system_prompt': text} if text else {}
            case 'default':
                return {}


def _non_blank(value: str) -> str | None:
    stripped = value.strip()
    return stripped or None


def _positive(value: int) -> int | None:
    return value if value > 0 else None


def _non_empty(values: Sequence[str]) -> list[str] | None:
    return list(values) if values else None


def _clean_directories(directories: Sequence[str]) -> list[str] | None:
    """Trim paths, drop blanks, None if nothing is left."""
    cleaned = [d.strip() for d in directories if d.strip()]
    return cleaned or None
