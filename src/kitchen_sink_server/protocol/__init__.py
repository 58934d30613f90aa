"""JSON-RPC / MCP wire types."""

from .types import (
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    CallToolResult,
    InitializeResult,
    JsonRpcError,
    JsonRpcErrorCode,
    JsonRpcResponse,
    ResourceContents,
    ResourceDescriptor,
    TextContent,
    ToolDescriptor,
)

__all__ = [
    "LATEST_PROTOCOL_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "CallToolResult",
    "InitializeResult",
    "JsonRpcError",
    "JsonRpcErrorCode",
    "JsonRpcResponse",
    "ResourceContents",
    "ResourceDescriptor",
    "TextContent",
    "ToolDescriptor",
]
