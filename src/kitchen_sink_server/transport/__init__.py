"""Transport layer.

SSE framing shared by the server-side session stream and the SDK client.
"""

from .sse import SSE_HEADERS, SseEvent, SseStream, format_comment, format_event, iter_events

__all__ = [
    "SSE_HEADERS",
    "SseEvent",
    "SseStream",
    "format_comment",
    "format_event",
    "iter_events",
]
