"""Server-Sent Events framing and the per-session stream handle.

Server side:
- format_event / format_comment build wire frames
- SseStream is the write handle a session owns; frames are queued whole and
  drained by exactly one reader, so concurrent writers never interleave bytes

Client side:
- iter_events parses a line iterator back into SseEvent objects
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from ..errors import StreamClosedError

logger = logging.getLogger(__name__)

HEARTBEAT_FRAME = ": ping\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


@dataclass
class SseEvent:
    """A parsed SSE event."""

    event: str = "message"
    data: str = ""
    id: str | None = None


def format_event(data: str, event: str | None = None) -> str:
    """Encode one SSE event; multi-line data becomes several data: lines."""
    lines = []
    if event:
        lines.append(f"event: {event}")
    for line in data.splitlines() or [""]:
        lines.append(f"data: {line}")
    return "\n".join(lines) + "\n\n"


def format_comment(text: str) -> str:
    """Encode an SSE comment (ignored by clients, keeps proxies flowing)."""
    return f": {text}\n\n"


class SseStream:
    """Write handle for one long-lived SSE response.

    Lifecycle is one-way: open until close() is called, then every send()
    raises StreamClosedError. close() may be called any number of times.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, data: str, event: str | None = "message") -> None:
        """Queue one event frame for delivery."""
        if self._closed:
            raise StreamClosedError(self.session_id)
        self._queue.put_nowait(format_event(data, event))

    async def send_comment(self, text: str) -> None:
        if self._closed:
            raise StreamClosedError(self.session_id)
        self._queue.put_nowait(format_comment(text))

    def close(self) -> bool:
        """Close the stream.

        Returns:
            True if this call closed the stream, False if it was already closed
        """
        if self._closed:
            return False
        self._closed = True
        self._queue.put_nowait(None)  # Wake the reader
        return True

    async def frames(self, heartbeat_interval: float = 0.0) -> AsyncIterator[str]:
        """Yield queued frames until the stream closes.

        Args:
            heartbeat_interval: Seconds of idleness before a ping comment is
                yielded. 0 disables heartbeats.
        """
        timeout = heartbeat_interval if heartbeat_interval > 0 else None
        while True:
            try:
                frame = await asyncio.wait_for(self._queue.get(), timeout=timeout)
            except TimeoutError:
                yield HEARTBEAT_FRAME
                continue

            if frame is None:
                break
            yield frame

    def pending(self) -> int:
        """Number of frames waiting to be read (for tests and diagnostics)."""
        return self._queue.qsize()


async def iter_events(lines: AsyncIterator[str]) -> AsyncIterator[SseEvent]:
    """Parse SSE lines into events.

    Comment lines are skipped; an empty line terminates an event.
    """
    event = SseEvent()
    data_lines: list[str] = []

    async for line in lines:
        if line == "":
            if data_lines:
                event.data = "\n".join(data_lines)
                yield event
            event = SseEvent()
            data_lines = []
            continue

        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            event.event = value
        elif field == "data":
            data_lines.append(value)
        elif field == "id":
            event.id = value
        else:
            logger.debug(f"Ignoring unknown SSE field: {field}")

    if data_lines:
        event.data = "\n".join(data_lines)
        yield event
