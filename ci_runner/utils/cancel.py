"""Cooperative cancellation for asyncio loops."""

from __future__ import annotations

import asyncio


class CancelledError(RuntimeError):
    """The operation was cancelled by its caller."""

    def __init__(self, message: str = "operation cancelled") -> None:
        super().__init__(message)


class DeadlineExceededError(CancelledError):
    """The caller's deadline passed before the operation finished."""

    def __init__(self, message: str = "deadline exceeded") -> None:
        super().__init__(message)


class CancellationToken:
    """A one-shot cancellation signal carrying the reason it fired.

    Must be created and used from within a running event loop.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._error: CancelledError | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def error(self) -> CancelledError | None:
        """The reason for cancellation, ``None`` while still active."""
        return self._error

    def cancel(self, error: CancelledError | None = None) -> None:
        """Fire the signal. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._error = error or CancelledError()
        self._event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def cancel_after(self, seconds: float) -> None:
        """Fire with ``DeadlineExceededError`` after ``seconds``."""
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(seconds, self.cancel, DeadlineExceededError())

    async def wait(self) -> CancelledError | None:
        """Block until the signal fires and return its reason."""
        await self._event.wait()
        return self._error

    @classmethod
    def with_timeout(cls, seconds: float) -> CancellationToken:
        token = cls()
        token.cancel_after(seconds)
        return token
