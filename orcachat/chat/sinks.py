"""
Sinks for streamed model output.

A sink accepts fragments one `write` at a time and is closed once. TeeSink
fans every write out to a live sink and an append-only buffer, which is how
the assistant reply gets captured while it is being delivered. ResponseSink is
the live side for HTTP: a queue drained by the StreamingResponse body.
"""

import asyncio
from typing import AsyncIterator, List, Protocol


class SinkClosed(Exception):
    """The receiving side is gone; no more fragments can be delivered."""


class FragmentSink(Protocol):
    async def write(self, fragment: str) -> None:
        ...

    async def close(self) -> None:
        ...


class TeeSink:
    def __init__(self, live: FragmentSink):
        self.live = live
        self._parts: List[str] = []

    async def write(self, fragment: str) -> None:
        # captured only once the live write went through
        await self.live.write(fragment)
        self._parts.append(fragment)

    async def close(self) -> None:
        await self.live.close()

    @property
    def captured(self) -> str:
        return "".join(self._parts)


_EOF = object()


class ResponseSink:
    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._detached = False

    @property
    def detached(self) -> bool:
        return self._detached

    async def write(self, fragment: str) -> None:
        if self._detached or self._closed:
            raise SinkClosed()
        self._queue.put_nowait(fragment)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_EOF)

    def detach(self) -> None:
        """Called when the client side stops reading (disconnect or finished body)."""
        self._detached = True

    async def iter_fragments(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _EOF:
                return
            yield item
