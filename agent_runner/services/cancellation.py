"""
Cancellation token for a single agent run.

A token fires at most once, either when cancel() is called or when its
deadline passes. Firing is observable (cancelled, reason), runs every
registered callback exactly once, and wakes every wait() caller.

The deadline is evaluated lazily: nothing is scheduled when the token is
created. Whoever awaits wait() (the runtime's watcher) is woken at the
deadline; anyone reading cancelled after the deadline sees it fired.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

Clock = Callable[[], float]
CancelCallback = Callable[[str], None]


class CancellationToken:
    """Single-fire cancellation signal with an optional deadline."""

    def __init__(self, deadline: float | None = None, *, clock: Clock = time.monotonic) -> None:
        """
        Args:
            deadline: Absolute time on clock's scale at which the token fires (None = never)
            clock: Monotonic time source (injectable for tests)
        """
        self._deadline = deadline
        self._clock = clock
        self._reason: str | None = None
        self._callbacks: list[CancelCallback] = []
        self._event = asyncio.Event()

    @classmethod
    def after(cls, seconds: float, *, clock: Clock = time.monotonic) -> CancellationToken:
        """Token that fires once `seconds` have elapsed from now."""
        if seconds <= 0:
            raise ValueError(f'Timeout must be positive, got {seconds}')
        return cls(deadline=clock() + seconds, clock=clock)

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        """True once the token has fired (checking also fires an expired deadline)."""
        if self._reason is None and self._deadline is not None and self._clock() >= self._deadline:
            self._fire('timeout')
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        """Why the token fired ('timeout' or the reason passed to cancel), None if it has not."""
        return self._reason if self.cancelled else None

    def remaining(self) -> float | None:
        """Seconds until the deadline (0 when passed), None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def cancel(self, reason: str = 'cancelled') -> bool:
        """
        Fire the token.

        Returns:
            True if this call fired it, False if it had already fired
        """
        if self.cancelled:
            return False
        self._fire(reason)
        return True

    def add_callback(self, callback: CancelCallback) -> None:
        """Run callback(reason) when the token fires (immediately if it already has)."""
        if self.cancelled:
            assert self._reason is not None
            callback(self._reason)
            return
        self._callbacks.append(callback)

    async def wait(self) -> str:
        """
        Wait until the token fires.

        Returns:
            The reason the token fired
        """
        while not self.cancelled:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=self.remaining())
            except TimeoutError:
                continue  # Deadline reached; the cancelled check fires the token
        assert self._reason is not None
        return self._reason

    def _fire(self, reason: str) -> None:
        self._reason = reason
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(reason)
