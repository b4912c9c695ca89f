"""
Cooperative cancellation for in-flight queries.

WHAT: Token a caller trips to stop a stream early
WHY: Closing a chat column must release the vendor connection promptly
HOW: asyncio.Event the read loop races against each body read
"""

import asyncio

from .types import QueryCancelledError


class CancellationToken:
    """Cancellation flag shared between a query and whoever may stop it."""

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation; later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise QueryCancelledError(self._reason or "Query cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled}, reason={self._reason!r})"
