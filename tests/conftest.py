"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from kitchen_sink_server.config import ServerConfig
from kitchen_sink_server.content import WidgetProvider
from kitchen_sink_server.registry import StreamRegistry
from kitchen_sink_server.router import MessageRouter
from kitchen_sink_server.session import StreamSessionManager
from kitchen_sink_server.tools import ToolRegistry, create_default_registry
from kitchen_sink_server.transport.sse import SseStream

ReadMessage = Callable[..., Awaitable[dict[str, Any]]]


def parse_frame(frame: str) -> tuple[str | None, str]:
    """Split one SSE frame into (event, data)."""
    event = None
    data_lines = []
    for line in frame.strip("\n").split("\n"):
        if line.startswith("event: "):
            event = line[len("event: ") :]
        elif line.startswith("data: "):
            data_lines.append(line[len("data: ") :])
    return event, "\n".join(data_lines)


@pytest.fixture
def config() -> ServerConfig:
    """Config without heartbeats or header flush so frames are predictable."""
    return ServerConfig(heartbeat_interval=0, flush_headers=False)


@pytest.fixture
def registry() -> StreamRegistry:
    return StreamRegistry()


@pytest.fixture
def tools() -> ToolRegistry:
    return create_default_registry()


@pytest.fixture
def widgets() -> WidgetProvider:
    return WidgetProvider()


@pytest.fixture
def manager(
    registry: StreamRegistry,
    tools: ToolRegistry,
    config: ServerConfig,
    widgets: WidgetProvider,
):
    manager = StreamSessionManager(
        registry=registry,
        tools=tools,
        config=config,
        widgets=widgets,
    )
    yield manager
    manager.close_all()


@pytest.fixture
def router(registry: StreamRegistry, config: ServerConfig) -> MessageRouter:
    return MessageRouter(registry, max_body_bytes=config.max_body_bytes)


@pytest.fixture
def read_message() -> ReadMessage:
    """Read the next JSON-RPC message written to a stream."""

    async def read(stream: SseStream, timeout: float = 2.0) -> dict[str, Any]:
        frames = stream.frames()
        try:
            frame = await asyncio.wait_for(frames.__anext__(), timeout)
        finally:
            await frames.aclose()
        event, data = parse_frame(frame)
        assert event == "message", f"unexpected frame: {frame!r}"
        return json.loads(data)

    return read


@pytest.fixture
def rpc() -> Callable[..., bytes]:
    """Encode a JSON-RPC message."""
    return encode_rpc


@pytest.fixture(name="parse_frame")
def parse_frame_fixture() -> Callable[[str], tuple[str | None, str]]:
    return parse_frame


def encode_rpc(
    method: str, params: dict[str, Any] | None = None, request_id: int | None = 1
) -> bytes:
    message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if request_id is not None:
        message["id"] = request_id
    if params is not None:
        message["params"] = params
    return json.dumps(message).encode("utf-8")
