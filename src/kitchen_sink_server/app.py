"""Kitchen Sink Server Application.

Creates the Starlette ASGI application. A single catch-all route hands every
request to the HTTP surface, which classifies it by (method, path), first
match wins:

- OPTIONS <any>            - CORS pre-flight, 204 with no body
- GET / and GET /health    - liveness text
- GET <sse_path>           - open a session stream
- POST <message_path>      - submit a message (?sessionId=...)
- POST <sse_path>          - probe; 405 "Use GET" (or 200 when permitted)
- anything else            - 404

Every response carries permissive CORS headers.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from enum import Enum

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from .config import ProbePolicy, ServerConfig
from .content import WidgetProvider
from .errors import ClientError, HandshakeError
from .registry import StreamRegistry
from .router import MessageRouter
from .session import StreamSessionManager
from .tools import ToolRegistry, create_default_registry

logger = logging.getLogger(__name__)

LIVENESS_TEXT = "MCP Server Running"
HEALTH_PATHS = ("", "/health")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "content-type",
}

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class Branch(str, Enum):
    """What the HTTP surface does with a request."""

    PREFLIGHT = "preflight"
    HEALTH = "health"
    STREAM_OPEN = "stream_open"
    MESSAGE_SUBMIT = "message_submit"
    PROBE = "probe"
    NOT_FOUND = "not_found"


def normalize_path(path: str) -> str:
    """Strip trailing slashes; the root becomes the empty string."""
    return path.rstrip("/")


def classify(method: str, path: str, config: ServerConfig) -> Branch:
    """Map a request to exactly one branch."""
    method = method.upper()
    clean = normalize_path(path)

    if method == "OPTIONS":
        return Branch.PREFLIGHT
    if method == "GET" and clean in HEALTH_PATHS:
        return Branch.HEALTH
    if method == "GET" and clean == normalize_path(config.sse_path):
        return Branch.STREAM_OPEN
    if method == "POST" and clean == normalize_path(config.message_path):
        return Branch.MESSAGE_SUBMIT
    if method == "POST" and clean == normalize_path(config.sse_path):
        return Branch.PROBE
    return Branch.NOT_FOUND


class HttpSurface:
    """Outermost dispatcher; every branch ends with a definite response."""

    def __init__(
        self,
        config: ServerConfig,
        sessions: StreamSessionManager,
        router: MessageRouter,
    ) -> None:
        self._config = config
        self._sessions = sessions
        self._router = router

    async def dispatch(self, request: Request) -> Response:
        branch = classify(request.method, request.url.path, self._config)
        try:
            response = await self._handle(branch, request)
        except ClientError as e:
            response = PlainTextResponse(e.message, status_code=e.status_code)
        except HandshakeError:
            logger.exception("SSE handshake failed")
            response = PlainTextResponse("Failed to open stream", status_code=500)
        except Exception:
            logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            response = PlainTextResponse("Internal error", status_code=500)

        response.headers.update(CORS_HEADERS)
        return response

    async def _handle(self, branch: Branch, request: Request) -> Response:
        if branch is Branch.PREFLIGHT:
            return Response(status_code=204)

        if branch is Branch.HEALTH:
            return PlainTextResponse(LIVENESS_TEXT)

        if branch is Branch.STREAM_OPEN:
            return await self._sessions.open_stream(request)

        if branch is Branch.MESSAGE_SUBMIT:
            ack = await self._router.handle(request)
            return PlainTextResponse(ack.message, status_code=ack.status_code)

        if branch is Branch.PROBE:
            if self._config.probe_policy is ProbePolicy.PERMIT:
                return PlainTextResponse("")
            logger.info(f"Rejected POST probe on {self._config.sse_path}")
            return PlainTextResponse("Use GET", status_code=405, headers={"Allow": "GET"})

        return PlainTextResponse("Not Found", status_code=404)


def create_app(
    config: ServerConfig | None = None,
    *,
    tools: ToolRegistry | None = None,
    registry: StreamRegistry | None = None,
) -> Starlette:
    """Create the kitchen sink application.

    Args:
        config: Server configuration (defaults to ServerConfig.from_env())
        tools: Operation catalog (defaults to echo + render)
        registry: Session store shared by the session manager and router

    Raises:
        ContentUnavailableError: If the widget is required but missing
    """
    config = config or ServerConfig.from_env()
    registry = registry if registry is not None else StreamRegistry()

    widgets = WidgetProvider(config.widget_path, required=config.widget_required)
    widgets.load()  # Apply the missing-content policy at startup

    sessions = StreamSessionManager(
        registry=registry,
        tools=tools or create_default_registry(),
        config=config,
        widgets=widgets,
    )
    router = MessageRouter(registry, max_body_bytes=config.max_body_bytes)
    surface = HttpSurface(config, sessions, router)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info(f"Streams at {config.sse_path}, messages at {config.endpoint_base}")
        yield
        sessions.close_all()

    app = Starlette(
        routes=[Route("/{path:path}", surface.dispatch, methods=ALL_METHODS)],
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.sessions = sessions
    app.state.router = router
    app.state.registry = registry
    return app


def create_app_from_env() -> Starlette:
    """Factory for ``uvicorn --factory``."""
    return create_app(ServerConfig.from_env())
