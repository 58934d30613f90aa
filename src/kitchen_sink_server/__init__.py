"""Kitchen Sink Server.

Session-scoped MCP endpoint over Server-Sent Events: a client opens a stream,
learns its session id from the first frame, posts JSON-RPC messages against
that session and receives the responses on the stream.
"""

from .app import create_app
from .config import ProbePolicy, ServerConfig
from .engine import ProtocolEngine
from .registry import StreamRegistry
from .router import MessageRouter, TransportAck
from .session import Session, StreamSessionManager
from .tools import ToolContext, ToolDefinition, ToolInput, ToolRegistry, ToolResult

__version__ = "0.1.0"

__all__ = [
    "MessageRouter",
    "ProbePolicy",
    "ProtocolEngine",
    "ServerConfig",
    "Session",
    "StreamRegistry",
    "StreamSessionManager",
    "ToolContext",
    "ToolDefinition",
    "ToolInput",
    "ToolRegistry",
    "ToolResult",
    "TransportAck",
    "create_app",
]
