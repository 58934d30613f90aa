"""Kitchen Sink SDK - async client for the SSE session protocol."""

from .client import RemoteError, SseSessionClient, SubmissionError

__all__ = ["RemoteError", "SseSessionClient", "SubmissionError"]
