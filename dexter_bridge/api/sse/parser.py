"""
SSE Line Parser
===============

Incremental decoder for a foreign server-sent event stream.

Chunks may split lines and multi-byte characters anywhere. Complete lines are
classified as ``event:``, ``data:`` or blank; ``data:`` payloads are parsed as
JSON and yielded with the current event name. Malformed payloads are dropped.
"""

from typing import Any, AsyncIterable, AsyncIterator, Iterator, List, Optional
from dataclasses import dataclass
import codecs
import json


@dataclass(frozen=True)
class SSEMessage:
    """One parsed ``data:`` line."""

    event: Optional[str]
    data: Any


class SSELineParser:
    """Stateful parser for one connection. Not reusable once closed."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._event: Optional[str] = None
        self._closed = False

    @property
    def current_event(self) -> Optional[str]:
        return self._event

    def feed(self, chunk: bytes) -> List[SSEMessage]:
        """
        Consume one chunk of bytes.

        Returns:
            Messages completed by this chunk, in order
        """
        if self._closed:
            raise RuntimeError("Parser is closed")
        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        # The last piece may be an incomplete line
        self._buffer = lines.pop()
        return list(self._process(lines))

    def close(self) -> List[SSEMessage]:
        """Flush residual bytes and the final unterminated line."""
        if self._closed:
            return []
        self._closed = True
        self._buffer += self._decoder.decode(b"", final=True)
        lines = self._buffer.split("\n")
        self._buffer = ""
        return list(self._process(lines))

    def _process(self, lines: List[str]) -> Iterator[SSEMessage]:
        for raw_line in lines:
            line = raw_line.rstrip()
            if not line:
                self._event = None
                continue
            if line.startswith("event:"):
                self._event = line[len("event:") :].strip()
                continue
            if not line.startswith("data:"):
                continue

            data_text = line[len("data:") :].strip()
            if not data_text:
                continue
            try:
                payload = json.loads(data_text)
            except ValueError:
                continue
            yield SSEMessage(event=self._event, data=payload)


async def aiter_sse_messages(chunks: AsyncIterable[bytes]) -> AsyncIterator[SSEMessage]:
    """Parse an async byte stream into SSE messages until it ends."""
    parser = SSELineParser()
    async for chunk in chunks:
        for message in parser.feed(chunk):
            yield message
    for message in parser.close():
        yield message
