"""
Outbound Sinks
==============

Byte sinks the protocol emitter writes to. The queue sink hands records to the
HTTP streaming response and fails writes once the client has gone away.
"""

from typing import AsyncIterator, List, Optional, Protocol
import asyncio


class SinkClosedError(Exception):
    """Raised when writing to a sink that is closed or whose client disconnected."""

    pass


class OutboundSink(Protocol):
    """Destination for encoded protocol records."""

    async def send(self, data: bytes) -> None: ...

    async def close(self) -> None: ...


class QueueSink:
    """
    asyncio.Queue backed sink.

    The producer (the bridge) calls ``send``/``close``; the consumer iterates
    ``stream()``. A ``None`` item is the end-of-stream signal.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
        self._closed = False
        self._disconnected = False

    @property
    def closed(self) -> bool:
        return self._closed or self._disconnected

    @property
    def disconnected(self) -> bool:
        """Whether the consumer stopped reading before the producer closed."""
        return self._disconnected

    async def send(self, data: bytes) -> None:
        if self.closed:
            raise SinkClosedError("Outbound stream is closed")
        await self._queue.put(data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(None)

    async def stream(self) -> AsyncIterator[bytes]:
        """Yield records until the producer closes the sink."""
        try:
            while True:
                item = await self._queue.get()
                if item is None:
                    break
                yield item
        finally:
            # Consumer stopped early: the client disconnected
            if not self._closed:
                self._disconnected = True


class ListSink:
    """Collects records in memory. Used for non-streaming callers and tests."""

    def __init__(self) -> None:
        self.records: List[bytes] = []
        self.closed = False

    async def send(self, data: bytes) -> None:
        if self.closed:
            raise SinkClosedError("Outbound stream is closed")
        self.records.append(data)

    async def close(self) -> None:
        self.closed = True
