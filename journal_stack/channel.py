from __future__ import annotations

import asyncio
from typing import AsyncIterator, Generic, TypeVar

T = TypeVar("T")

_MISSING = object()
_CLOSED = object()


class Channel(Generic[T]):
    """
    Latest-value broadcast channel.

    Each subscriber gets its own queue. Subscribing replays the current value
    (when one has been published) and then every later publish, in order.
    """

    def __init__(self, initial: T | object = _MISSING, *, name: str = "channel"):
        self.name = name
        self._value: T | object = initial
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def value(self) -> T:
        if self._value is _MISSING:
            raise LookupError(f"{self.name}: nothing published yet")
        return self._value  # type: ignore[return-value]

    def publish(self, value: T) -> None:
        self._value = value
        for queue in list(self._subscribers):
            queue.put_nowait(value)

    async def subscribe(self) -> AsyncIterator[T]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        try:
            if self._value is not _MISSING:
                yield self._value  # type: ignore[misc]
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            self._subscribers.discard(queue)

    def close(self) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(_CLOSED)
