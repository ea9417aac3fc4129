"""Ordered, unbounded, close-once event channel.

Connects a build process (single producer) to its consumer.  Puts never
block.  Once closed, puts are refused and readers drain whatever is
left before seeing the end of the stream.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Optional

from ..parser.events import FinishedEvent, OutputEvent

_CLOSED = object()


class EventChannel:
    """An ``asyncio.Queue`` with close semantics.

    Usage::

        async for event in channel:
            ...  # stops after FinishedEvent / close
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, event: OutputEvent) -> bool:
        """Enqueue *event*.  Returns ``False`` if the channel is closed."""
        if self._closed:
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> bool:
        """Close the channel.  Returns ``True`` only for the first call."""
        if self._closed:
            return False
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        return True

    async def get(self) -> Optional[OutputEvent]:
        """Next event, or ``None`` once the channel is closed and drained."""
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker in place for any other reader.
            self._queue.put_nowait(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    async def drain(self) -> list[OutputEvent]:
        """Collect every event until the channel is closed."""
        return [event async for event in self]

    def __aiter__(self) -> AsyncIterator[OutputEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[OutputEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event
            if isinstance(event, FinishedEvent):
                return
