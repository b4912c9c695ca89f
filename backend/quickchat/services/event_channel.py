"""
One-way ordered event channel.

WHAT: Carry named text events from a producing query to one consumer
WHY: Deltas must arrive in order, without shared mutable callbacks
HOW: Bounded asyncio.Queue (backpressure) with an end-of-stream marker
"""

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator


@dataclass(frozen=True)
class ChannelEvent:
    """A named event with a raw UTF-8 text payload."""
    name: str
    payload: str


_CLOSED = object()


class EventChannel:
    """
    Single-producer, single-consumer channel.

    The producer calls send() per event and close() exactly once; close(error)
    makes the consumer's iteration raise that error after the buffered events
    are drained.
    """

    def __init__(self, maxsize: int = 256):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._error: BaseException | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, name: str, payload: str) -> None:
        if self._closed:
            raise RuntimeError("send() on a closed channel")
        await self._queue.put(ChannelEvent(name=name, payload=payload))

    async def close(self, error: BaseException | None = None) -> None:
        if self._closed:
            return
        self._closed = True
        self._error = error
        await self._queue.put(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[ChannelEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                if self._error is not None:
                    raise self._error
                return
            yield item
