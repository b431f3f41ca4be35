"""
Cooperative cancellation for dispatches and workflow waits.
"""

import asyncio
from typing import Optional


class CancellationToken:
    """
    One-shot cancellation signal backed by an asyncio.Event.

    Every wait the dispatcher performs is raced against the token, so
    cancel() interrupts a long patient wait promptly.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until cancelled or `timeout` seconds pass.

        Returns:
            True if the token was cancelled, False on timeout
        """
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True
