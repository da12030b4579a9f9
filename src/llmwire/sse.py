"""Server-sent event decoding — raw body bytes to ordered text deltas."""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from llmwire.providers.base import ProtocolAdapter

logger = logging.getLogger(__name__)

_DATA_PREFIX = "data: "


class _Done:
    """Marker returned by ``decode_line`` for the end-of-stream sentinel."""


DONE = _Done()


def decode_line(line: str, adapter: ProtocolAdapter) -> str | _Done | None:
    """Decode one complete SSE line.

    Returns the text delta, ``DONE`` for the sentinel, or ``None`` when the
    line carries no text (blank, non-data, heartbeat, malformed JSON).
    """
    line = line.strip()
    if not line or not line.startswith(_DATA_PREFIX):
        return None

    data_str = line[len(_DATA_PREFIX) :].strip()
    if adapter.done_sentinel is not None and data_str == adapter.done_sentinel:
        return DONE

    try:
        event = json.loads(data_str)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed SSE frame: %.80s", data_str)
        return None
    if not isinstance(event, dict):
        logger.debug("Skipping non-object SSE frame: %.80s", data_str)
        return None

    text = adapter.extract_delta(event)
    return text or None


class StreamDecoder:
    """Reassembles SSE lines across arbitrary chunk boundaries.

    Bytes are decoded incrementally so that multi-byte UTF-8 characters split
    between chunks survive. Only complete lines are ever parsed; the trailing
    fragment of each chunk is kept until the next ``feed`` or ``flush``.
    """

    def __init__(self, adapter: ProtocolAdapter) -> None:
        self.adapter = adapter
        self.done = False
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one transport chunk and return the deltas it completes."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._process(lines)

    def flush(self) -> list[str]:
        """Drain the residual buffer at end of stream."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        residual, self._buffer = self._buffer, ""
        if not residual.strip():
            return []
        return self._process([residual])

    def _process(self, lines: list[str]) -> list[str]:
        deltas: list[str] = []
        for line in lines:
            result = decode_line(line, self.adapter)
            if result is DONE:
                self.done = True
                break
            if isinstance(result, str):
                deltas.append(result)
        return deltas


async def aiter_deltas(
    chunks: AsyncIterable[bytes],
    adapter: ProtocolAdapter,
) -> AsyncIterator[str]:
    """Yield text deltas from an async byte stream until it ends or signals done."""
    decoder = StreamDecoder(adapter)
    async for chunk in chunks:
        for delta in decoder.feed(chunk):
            yield delta
        if decoder.done:
            return
    for delta in decoder.flush():
        yield delta
