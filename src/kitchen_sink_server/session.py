"""Stream session manager.

Owns the stream-open handshake:
- generates a fresh session id
- builds the session's SSE stream and protocol engine
- registers the pair in the stream registry
- announces the message endpoint as the first stream frame
- tears everything down when the stream ends

Teardown is idempotent and never suspends. It runs from the stream
generator's ``finally`` (client disconnect, write failure) and from
close_all() at application shutdown.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from starlette.requests import Request
from starlette.responses import StreamingResponse

from .config import ServerConfig
from .content import WidgetProvider
from .engine import ProtocolEngine
from .errors import DuplicateSessionError, HandshakeError
from .registry import StreamRegistry
from .tools import ToolRegistry
from .transport.sse import SSE_HEADERS, SseStream, format_comment, format_event

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5

DisconnectCheck = Callable[[], Awaitable[bool]]


@dataclass
class Session:
    """A live stream bound to its protocol engine."""

    session_id: str
    stream: SseStream
    engine: ProtocolEngine
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class StreamSessionManager:
    """Creates, registers and tears down sessions."""

    def __init__(
        self,
        registry: StreamRegistry,
        tools: ToolRegistry,
        config: ServerConfig,
        widgets: WidgetProvider | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._registry = registry
        self._tools = tools
        self._config = config
        self._widgets = widgets
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    @property
    def registry(self) -> StreamRegistry:
        return self._registry

    async def open(self) -> Session:
        """Create and register a new session.

        Raises:
            HandshakeError: If no unique session id could be allocated
        """
        for _ in range(MAX_ID_ATTEMPTS):
            session_id = self._id_factory()
            stream = SseStream(session_id)
            engine = ProtocolEngine(
                session_id=session_id,
                send_fn=stream.send,
                tools=self._tools,
                widgets=self._widgets,
            )
            session = Session(session_id=session_id, stream=stream, engine=engine)
            try:
                self._registry.insert(session)
            except DuplicateSessionError:
                logger.warning(f"Session id collision on {session_id}, regenerating")
                continue

            logger.info(f"New SSE connection, session {session_id} ready")
            return session

        raise HandshakeError(
            f"Could not allocate a unique session id in {MAX_ID_ATTEMPTS} attempts"
        )

    async def open_stream(self, request: Request) -> StreamingResponse:
        """Open a session and return its long-lived SSE response.

        No registry entry survives a failed handshake.
        """
        session = await self.open()
        try:
            return StreamingResponse(
                self.event_source(session, request.is_disconnected),
                media_type="text/event-stream",
                headers=SSE_HEADERS,
            )
        except Exception as e:
            self.close(session.session_id, reason="handshake failed")
            raise HandshakeError(f"Failed to establish stream: {e}") from e

    async def event_source(
        self,
        session: Session,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[str]:
        """Yield the SSE frames for one session until it closes."""
        reason = "stream ended"
        try:
            if self._config.flush_headers:
                yield format_comment("stream open")
            yield format_event(self._config.endpoint_for(session.session_id), event="endpoint")

            async for frame in session.stream.frames(self._config.heartbeat_interval):
                if is_disconnected is not None and await is_disconnected():
                    reason = "client disconnected"
                    break
                yield frame
        except GeneratorExit:
            reason = "client disconnected"
            raise
        except Exception as e:
            reason = f"write failed: {e}"
            logger.exception(f"SSE stream error for session {session.session_id}")
            raise
        finally:
            self.close(session.session_id, reason=reason)

    def get(self, session_id: str) -> Session | None:
        return self._registry.get(session_id)

    def close(self, session_id: str, reason: str = "closed") -> bool:
        """Tear down a session.

        Returns:
            True if this call removed the session, False if it was already gone
        """
        session = self._registry.remove(session_id)
        if session is None:
            return False

        session.engine.close()
        session.stream.close()
        logger.info(f"SSE connection closed, session {session_id} ({reason})")
        return True

    def close_all(self) -> int:
        """Tear down every live session (application shutdown)."""
        sessions = self._registry.drain()
        for session in sessions:
            session.engine.close()
            session.stream.close()
        if sessions:
            logger.info(f"Closed {len(sessions)} sessions on shutdown")
        return len(sessions)

    @property
    def active_count(self) -> int:
        return len(self._registry)
