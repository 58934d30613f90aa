"""JSON-RPC and MCP wire types.

Note: MCP field names are camelCase on the wire (inputSchema,
structuredContent, isError, ...). Do not change them to snake_case.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Newest first; the first entry is offered when the client asks for
# a version we do not know.
SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")
LATEST_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[0]

SERVER_NAME = "kitchen-sink-server"
SERVER_VERSION = "0.1.0"


# =============================================================================
# JSON-RPC 2.0 Base Types
# =============================================================================


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any | None = None


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: str | int | None
    result: Any | None = None
    error: JsonRpcError | None = None

    def to_wire(self) -> str:
        """Serialize with exactly one of result/error present."""
        if self.error is not None:
            return self.model_dump_json(exclude={"result"})
        return self.model_dump_json(exclude={"error"})


class JsonRpcErrorCode:
    """Standard JSON-RPC 2.0 error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


# =============================================================================
# MCP Types
# =============================================================================


class McpModel(BaseModel):
    """Base model for MCP payloads."""

    model_config = ConfigDict(populate_by_name=True)


class TextContent(McpModel):
    type: Literal["text"] = "text"
    text: str


class CallToolResult(McpModel):
    """Result of tools/call."""

    content: list[TextContent]
    structuredContent: dict[str, Any] | None = None
    isError: bool = False
    meta: dict[str, Any] | None = Field(default=None, alias="_meta")


class ToolDescriptor(McpModel):
    """Entry in the tools/list response."""

    name: str
    title: str | None = None
    description: str
    inputSchema: dict[str, Any]
    meta: dict[str, Any] | None = Field(default=None, alias="_meta")


class ResourceDescriptor(McpModel):
    """Entry in the resources/list response."""

    uri: str
    name: str
    mimeType: str
    description: str | None = None


class ResourceContents(McpModel):
    """Entry in the resources/read response."""

    uri: str
    mimeType: str
    text: str


class ServerInfo(McpModel):
    name: str = SERVER_NAME
    version: str = SERVER_VERSION


class InitializeResult(McpModel):
    """Result of the initialize handshake."""

    protocolVersion: str = LATEST_PROTOCOL_VERSION
    capabilities: dict[str, Any] = Field(
        default_factory=lambda: {
            "tools": {"listChanged": False},
            "resources": {"listChanged": False},
        }
    )
    serverInfo: ServerInfo = Field(default_factory=ServerInfo)


def negotiate_protocol_version(requested: Any) -> str:
    """Echo the client's version when supported, else offer the latest."""
    if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return LATEST_PROTOCOL_VERSION
