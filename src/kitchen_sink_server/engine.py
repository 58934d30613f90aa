"""Per-session protocol engine.

Accepts raw JSON-RPC payloads for one session, dispatches them to the MCP
method handlers and the tool catalog, and writes exactly one response frame
per request to the session's stream.

Lifecycle is one-way: open -> closed. Closing cancels in-flight dispatches
and makes later submissions raise EngineClosedError.

Concurrent submissions on the same session are processed concurrently;
their responses are written in completion order.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from pydantic import BaseModel

from .content import WidgetProvider
from .errors import (
    EngineClosedError,
    InvalidArgumentsError,
    InvalidRequestError,
    MethodNotFoundError,
    OperationFailedError,
    ParseError,
    ProtocolError,
    StreamClosedError,
)
from .protocol.types import (
    InitializeResult,
    JsonRpcResponse,
    negotiate_protocol_version,
)
from .tools import ToolContext, ToolRegistry, ToolResult

logger = logging.getLogger(__name__)

# Writes one serialized JSON-RPC message to the session stream
SendFn = Callable[[str], Coroutine[Any, Any, None]]

_SILENT_NOTIFICATIONS = frozenset(
    {
        "notifications/initialized",
        "notifications/cancelled",
        "notifications/roots/list_changed",
    }
)


class ProtocolEngine:
    """JSON-RPC dispatcher bound to one session stream."""

    def __init__(
        self,
        session_id: str,
        send_fn: SendFn,
        tools: ToolRegistry,
        widgets: WidgetProvider | None = None,
    ) -> None:
        self.session_id = session_id
        self._send = send_fn
        self._tools = tools
        self._widgets = widgets
        self._closed = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._client_info: dict[str, Any] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit(self, payload: bytes | str) -> None:
        """Accept one raw message and schedule its processing.

        Returns as soon as the message is accepted; the response, if any,
        arrives later on the stream.

        Raises:
            EngineClosedError: If the session has been torn down
        """
        if self._closed:
            raise EngineClosedError(self.session_id)

        try:
            message = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            await self._emit_error(None, ParseError(f"Parse error: {e}"))
            return

        if not isinstance(message, dict):
            await self._emit_error(
                None, InvalidRequestError("Request must be a JSON object")
            )
            return

        task = asyncio.create_task(self._process(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process(self, message: dict[str, Any]) -> None:
        request_id = message.get("id")
        method = message.get("method")

        if method is None:
            if "result" in message or "error" in message:
                logger.debug(f"Ignoring client response for id {request_id!r}")
                return
            await self._emit_error(request_id, InvalidRequestError("Missing 'method' field"))
            return

        # Responses can only echo string or integer ids
        if request_id is not None and not _is_valid_id(request_id):
            await self._emit_error(
                None, InvalidRequestError("'id' must be a string or an integer")
            )
            return

        if message.get("jsonrpc") != "2.0" or not isinstance(method, str):
            if request_id is not None:
                await self._emit_error(
                    request_id, InvalidRequestError("Invalid JSON-RPC 2.0 request")
                )
            return

        params = message.get("params")
        if params is not None and not isinstance(params, dict):
            if request_id is not None:
                await self._emit_error(
                    request_id, InvalidRequestError("'params' must be an object")
                )
            return

        # Notification (no id)
        if request_id is None:
            self._handle_notification(method, params or {})
            return

        try:
            result = await self._handle_request(method, params or {})
        except ProtocolError as e:
            await self._emit_error(request_id, e)
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Session {self.session_id}: error handling {method}")
            await self._emit_error(
                request_id,
                ProtocolError(str(e) or type(e).__name__),
            )
            return

        await self._emit(JsonRpcResponse(id=request_id, result=result))

    def _handle_notification(self, method: str, params: dict[str, Any]) -> None:
        if method in _SILENT_NOTIFICATIONS:
            logger.debug(f"Session {self.session_id}: notification {method}")
        else:
            logger.info(f"Session {self.session_id}: ignoring unknown notification {method}")

    async def _handle_request(self, method: str, params: dict[str, Any]) -> Any:
        """Route a JSON-RPC request to the appropriate handler."""
        if method == "initialize":
            self._client_info = params.get("clientInfo")
            logger.info(f"Session {self.session_id}: initialize from {self._client_info}")
            result = InitializeResult(
                protocolVersion=negotiate_protocol_version(params.get("protocolVersion"))
            )
            if self._widgets is None:
                result.capabilities.pop("resources", None)
            return _dump(result)

        if method == "ping":
            return {}

        if method == "tools/list":
            logger.info(f"Session {self.session_id}: client is inspecting tools")
            return {"tools": [_dump(t.descriptor()) for t in self._tools.list_tools()]}

        if method == "tools/call":
            result = await self.dispatch(params.get("name"), params.get("arguments"))
            return _dump(result.to_call_result())

        if method == "resources/list" and self._widgets is not None:
            return {"resources": [_dump(self._widgets.descriptor())]}

        if method == "resources/read" and self._widgets is not None:
            uri = params.get("uri")
            contents = self._widgets.read(uri) if isinstance(uri, str) else None
            if contents is None:
                raise InvalidArgumentsError(f"Unknown resource: {uri}")
            return {"contents": [_dump(contents)]}

        raise MethodNotFoundError(method)

    # =========================================================================
    # Operation dispatch
    # =========================================================================

    async def dispatch(self, operation_name: Any, arguments: Any) -> ToolResult:
        """Resolve, validate and run one operation.

        Raises:
            EngineClosedError: If the engine is closed
            OperationNotFoundError: Unknown operation name
            InvalidArgumentsError: Arguments violate the declared shape
            OperationFailedError: The handler raised or timed out
        """
        if self._closed:
            raise EngineClosedError(self.session_id)

        tool = self._tools.resolve(operation_name)
        args = tool.validate(arguments)

        logger.info(f"Session {self.session_id}: executing tool {tool.name}")
        context = ToolContext(session_id=self.session_id)

        try:
            if tool.timeout:
                return await asyncio.wait_for(tool.handler(args, context), timeout=tool.timeout)
            return await tool.handler(args, context)
        except asyncio.CancelledError:
            raise
        except TimeoutError as e:
            raise OperationFailedError(tool.name, f"timed out after {tool.timeout}s") from e
        except ProtocolError:
            raise
        except Exception as e:
            logger.exception(f"Session {self.session_id}: tool {tool.name} raised")
            raise OperationFailedError(tool.name, str(e) or type(e).__name__) from e

    # =========================================================================
    # Emission
    # =========================================================================

    async def _emit_error(self, request_id: Any, error: ProtocolError) -> None:
        if not _is_valid_id(request_id):
            request_id = None
        await self._emit(JsonRpcResponse(id=request_id, error=error.to_error()))

    async def _emit(self, response: JsonRpcResponse) -> None:
        """Write a response; dropped (and logged) if the stream is gone."""
        if self._closed:
            logger.warning(
                f"Session {self.session_id}: dropping response {response.id!r}, engine closed"
            )
            return
        try:
            await self._send(response.to_wire())
        except StreamClosedError:
            logger.warning(
                f"Session {self.session_id}: dropping response {response.id!r}, stream closed"
            )

    # =========================================================================
    # Teardown
    # =========================================================================

    async def join(self) -> None:
        """Wait for in-flight dispatches to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> bool:
        """Close the engine and cancel in-flight dispatches.

        Never suspends, so it is safe to call from a cancelled context.

        Returns:
            True if this call closed the engine, False if already closed
        """
        if self._closed:
            return False
        self._closed = True

        cancelled = 0
        for task in list(self._tasks):
            if task.cancel():
                cancelled += 1
        logger.debug(f"Session {self.session_id}: engine closed ({cancelled} dispatches cancelled)")
        return True


def _is_valid_id(request_id: Any) -> bool:
    return isinstance(request_id, (str, int)) and not isinstance(request_id, bool)


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(by_alias=True, exclude_none=True)
