"""Incremental decoder for newline-delimited ``data:`` event frames."""

from __future__ import annotations

import codecs
import json
import re
from collections import deque
from typing import Any, AsyncIterable, AsyncIterator, Deque, Dict, Iterable, Iterator, Optional, Union

from .base import EventType, ProtocolError, StreamEvent

Chunk = Union[str, bytes]

DATA_MARKER = "data: "

# Used only when a frame fails to parse, to tell a broken ERROR frame apart
# from ordinary noise.
_ERROR_DISCRIMINATOR = re.compile(r'"type"\s*:\s*"ERROR"')


class EventFrameDecoder:
    """
    Turn arbitrarily split text chunks into decoded :class:`StreamEvent` records.

    Records are newline-terminated. A trailing partial line is kept in the
    buffer and prefixed onto the next chunk, so the decoded sequence does not
    depend on where the network happened to split the stream.

    Rules:
    - Only lines starting with ``data: `` are candidate events.
    - Malformed JSON, non-object JSON, and unknown ``type`` values are skipped.
    - A line that looks like an ``ERROR`` frame but cannot be parsed raises
      :class:`ProtocolError` and closes the decoder.

    A decoder is single use: after :meth:`finish` or a decode failure every
    further :meth:`feed` raises :class:`ProtocolError`.
    """

    def __init__(self, marker: str = DATA_MARKER) -> None:
        self.marker = marker
        self._buffer = ""
        self._pending: Deque[str] = deque()
        self._bytes = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, chunk: Chunk) -> Iterator[StreamEvent]:
        """Buffer a chunk and return an iterator over the events it completes."""
        self._ensure_open()
        text = self._bytes.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        self._pending.extend(lines)
        return self._drain()

    def finish(self) -> Iterator[StreamEvent]:
        """
        Mark the end of the stream.

        Returns any complete-but-unconsumed events. Bytes after the last
        newline never formed a record and are discarded.
        """
        self._ensure_open()
        self._bytes.decode(b"", final=True)
        self._buffer = ""
        self._closed = True
        return self._drain()

    @property
    def buffered(self) -> str:
        """Partial line waiting for its terminator."""
        return self._buffer

    def _drain(self) -> Iterator[StreamEvent]:
        while self._pending:
            line = self._pending.popleft()
            event = self._parse_line(line)
            if event is not None:
                yield event

    def _parse_line(self, line: str) -> Optional[StreamEvent]:
        line = line.rstrip("\r")
        if not line.startswith(self.marker):
            return None
        body = line[len(self.marker) :]

        try:
            data = json.loads(body)
        except json.JSONDecodeError as exc:
            if _ERROR_DISCRIMINATOR.search(body):
                self._closed = True
                self._pending.clear()
                raise ProtocolError(f"Undecodable ERROR frame: {exc}") from exc
            return None

        if not isinstance(data, dict):
            return None
        try:
            event_type = EventType(data.get("type"))
        except ValueError:
            return None
        return _build_event(event_type, data)

    def _ensure_open(self) -> None:
        if self._closed:
            raise ProtocolError("Decoder already finished; create a new one per stream")


def _build_event(event_type: EventType, data: Dict[str, Any]) -> StreamEvent:
    fields = {key: value for key, value in data.items() if key != "type"}
    message = fields.get("message")
    url = fields.get("url") or fields.get("streamingUrl")
    return StreamEvent(
        type=event_type,
        message=str(message) if message is not None else None,
        url=str(url) if url else None,
        data=fields,
    )


def iter_events(chunks: Iterable[Chunk], decoder: Optional[EventFrameDecoder] = None) -> Iterator[StreamEvent]:
    """Lazily decode a finite iterable of chunks."""
    decoder = decoder or EventFrameDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.finish()


async def aiter_events(
    chunks: AsyncIterable[Chunk],
    decoder: Optional[EventFrameDecoder] = None,
) -> AsyncIterator[StreamEvent]:
    """Async counterpart of :func:`iter_events` for network byte streams."""
    decoder = decoder or EventFrameDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.finish():
        yield event
