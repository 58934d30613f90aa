"""Exception hierarchy.

Three families of failures flow through the server:
- Client errors: surfaced on the short-lived POST with a 4xx status
- Protocol errors: turned into JSON-RPC error frames on the session stream
- Transport errors: logged, and the session is torn down
"""

from __future__ import annotations

from typing import Any

from .protocol.types import JsonRpcError, JsonRpcErrorCode


class KitchenSinkError(Exception):
    """Base class for all server errors."""


# =============================================================================
# Client Errors (short-lived submission channel)
# =============================================================================


class ClientError(KitchenSinkError):
    """A submission the client must fix before retrying."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingSessionIdError(ClientError):
    """The submission carried no sessionId query parameter."""

    status_code = 400

    def __init__(self) -> None:
        super().__init__("Missing sessionId")


class UnknownSessionError(ClientError):
    """The sessionId does not name a live stream.

    The client has to open a new stream; sessions are never created implicitly.
    """

    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__("Session not found")
        self.session_id = session_id


class PayloadTooLargeError(ClientError):
    """The submission body exceeded the configured limit."""

    status_code = 413

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Payload too large ({size} > {limit} bytes)")
        self.size = size
        self.limit = limit


# =============================================================================
# Protocol Errors (delivered on the session stream)
# =============================================================================


class ProtocolError(KitchenSinkError):
    """Exception for JSON-RPC level failures."""

    code: int = JsonRpcErrorCode.INTERNAL_ERROR
    kind: str = "InternalError"

    def __init__(self, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.data = data or {}

    def to_error(self) -> JsonRpcError:
        """Build the JSON-RPC error object for this failure."""
        return JsonRpcError(
            code=self.code,
            message=self.message,
            data={"kind": self.kind, **self.data},
        )


class ParseError(ProtocolError):
    code = JsonRpcErrorCode.PARSE_ERROR
    kind = "ParseError"


class InvalidRequestError(ProtocolError):
    code = JsonRpcErrorCode.INVALID_REQUEST
    kind = "InvalidRequest"


class MethodNotFoundError(ProtocolError):
    code = JsonRpcErrorCode.METHOD_NOT_FOUND
    kind = "MethodNotFound"

    def __init__(self, method: str) -> None:
        super().__init__(f"Unknown method: {method}", {"method": method})


class OperationNotFoundError(ProtocolError):
    """No tool with the requested name is registered."""

    code = JsonRpcErrorCode.METHOD_NOT_FOUND
    kind = "OperationNotFound"

    def __init__(self, operation: str) -> None:
        super().__init__(f"Tool not found: {operation}", {"operation": operation})
        self.operation = operation


class InvalidArgumentsError(ProtocolError):
    """Arguments did not satisfy the operation's declared shape."""

    code = JsonRpcErrorCode.INVALID_PARAMS
    kind = "InvalidArguments"

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []


class OperationFailedError(ProtocolError):
    """The tool handler raised or timed out."""

    code = JsonRpcErrorCode.INTERNAL_ERROR
    kind = "InternalError"

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Tool '{operation}' failed: {reason}", {"operation": operation})
        self.operation = operation


# =============================================================================
# Transport Errors
# =============================================================================


class StreamClosedError(KitchenSinkError):
    """Write attempted on a stream that has already closed."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Stream for session {session_id} is closed")
        self.session_id = session_id


class EngineClosedError(KitchenSinkError):
    """Submission attempted on an engine that has been torn down."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Engine for session {session_id} is closed")
        self.session_id = session_id


class DuplicateSessionError(KitchenSinkError):
    """A session id is already registered."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session already registered: {session_id}")
        self.session_id = session_id


class HandshakeError(KitchenSinkError):
    """The stream could not be established."""


# =============================================================================
# Startup Errors
# =============================================================================


class ContentUnavailableError(KitchenSinkError):
    """Required widget content could not be loaded."""


class ConfigError(KitchenSinkError, ValueError):
    """Invalid server configuration."""
