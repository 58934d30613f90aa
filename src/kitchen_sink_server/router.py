"""Message router.

Resolves the sessionId of a short-lived submission to its live session and
hands the payload to that session's engine. The router does not look inside
the payload; the engine owns parsing and validation.

The POST only ever gets a transport-level acknowledgment. Operation results
travel over the session's stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from starlette.requests import Request

from .errors import (
    EngineClosedError,
    MissingSessionIdError,
    PayloadTooLargeError,
    UnknownSessionError,
)
from .registry import StreamRegistry

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200


@dataclass(frozen=True)
class TransportAck:
    """Outcome of delivering a submission to an engine."""

    status_code: int
    message: str

    @property
    def accepted(self) -> bool:
        return self.status_code == 202


ACCEPTED = TransportAck(202, "Accepted")
DELIVERY_FAILED = TransportAck(500, "Internal error")


class MessageRouter:
    """Routes submissions to the engine registered for their session."""

    def __init__(self, registry: StreamRegistry, max_body_bytes: int = 4 * 1024 * 1024) -> None:
        self._registry = registry
        self._max_body_bytes = max_body_bytes

    async def handle(self, request: Request) -> TransportAck:
        """Read the request body once and route it.

        Raises:
            MissingSessionIdError: No sessionId query parameter
            UnknownSessionError: sessionId is not live
            PayloadTooLargeError: Body exceeds the configured limit
        """
        session_id = request.query_params.get("sessionId")
        if not session_id:
            logger.warning("POST without sessionId")
            raise MissingSessionIdError()

        # Reject unknown sessions before reading the body
        if session_id not in self._registry:
            logger.warning(f"POST for unknown session {session_id}")
            raise UnknownSessionError(session_id)

        body = await self._read_body(session_id, request)
        return await self.route(session_id, body)

    async def _read_body(self, session_id: str, request: Request) -> bytes:
        """Buffer the body, stopping as soon as it exceeds the limit."""
        declared = request.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self._max_body_bytes:
            logger.warning(
                f"POST for session {session_id} rejected: declared {declared} bytes "
                f"exceeds {self._max_body_bytes}"
            )
            raise PayloadTooLargeError(int(declared), self._max_body_bytes)

        chunks: list[bytes] = []
        size = 0
        async for chunk in request.stream():
            size += len(chunk)
            if size > self._max_body_bytes:
                logger.warning(
                    f"POST for session {session_id} rejected: body passed "
                    f"{self._max_body_bytes} bytes"
                )
                raise PayloadTooLargeError(size, self._max_body_bytes)
            chunks.append(chunk)
        return b"".join(chunks)

    async def route(self, session_id: str | None, payload: bytes) -> TransportAck:
        """Deliver a buffered payload to the session's engine.

        Raises:
            MissingSessionIdError: session_id is empty
            UnknownSessionError: session_id is not live
            PayloadTooLargeError: Payload exceeds the configured limit
        """
        if not session_id:
            raise MissingSessionIdError()

        if len(payload) > self._max_body_bytes:
            logger.warning(
                f"POST for session {session_id} rejected: {len(payload)} bytes "
                f"exceeds {self._max_body_bytes}"
            )
            raise PayloadTooLargeError(len(payload), self._max_body_bytes)

        session = self._registry.get(session_id)
        if session is None:
            logger.warning(f"POST for unknown session {session_id}")
            raise UnknownSessionError(session_id)

        if logger.isEnabledFor(logging.DEBUG):
            snippet = payload[:SNIPPET_LENGTH].decode("utf-8", errors="replace")
            logger.debug(
                f"POST received for session {session_id} ({len(payload)} bytes): {snippet}"
            )

        try:
            await session.engine.submit(payload)
        except EngineClosedError as e:
            logger.warning(f"POST raced with teardown of session {session_id}")
            raise UnknownSessionError(session_id) from e
        except Exception:
            logger.exception(f"Error delivering message to session {session_id}")
            return DELIVERY_FAILED

        return ACCEPTED
