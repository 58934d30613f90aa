"""End-to-end tests for the SDK client.

The client talks to the real session manager and router through an
httpx.MockTransport, so the stream and the submissions share one event loop
the same way they do behind a real server.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio

from kitchen_sink_server.errors import ClientError
from kitchen_sink_server.registry import StreamRegistry
from kitchen_sink_server.router import MessageRouter
from kitchen_sink_server.sdk import RemoteError, SseSessionClient, SubmissionError
from kitchen_sink_server.session import StreamSessionManager
from kitchen_sink_server.transport.sse import SSE_HEADERS

BASE_URL = "http://testserver"


async def _encode(frames: AsyncIterator[str]) -> AsyncIterator[bytes]:
    async for frame in frames:
        yield frame.encode("utf-8")


def _transport(manager: StreamSessionManager, router: MessageRouter) -> httpx.MockTransport:
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.path == "/mcp":
            session = await manager.open()
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream", **SSE_HEADERS},
                content=_encode(manager.event_source(session)),
            )

        if request.method == "POST" and request.url.path == "/mcp/messages":
            try:
                ack = await router.route(request.url.params.get("sessionId"), request.content)
            except ClientError as e:
                return httpx.Response(e.status_code, text=e.message)
            return httpx.Response(ack.status_code, text=ack.message)

        return httpx.Response(404, text="Not Found")

    return httpx.MockTransport(handler)


@pytest_asyncio.fixture
async def client(manager: StreamSessionManager, router: MessageRouter):
    http_client = httpx.AsyncClient(transport=_transport(manager, router), base_url=BASE_URL)
    sdk_client = SseSessionClient(BASE_URL, timeout=5.0, http_client=http_client)
    await sdk_client.connect()
    yield sdk_client
    await sdk_client.close()
    await http_client.aclose()


class TestSseSessionClient:
    """Tests for a client driving a live session."""

    @pytest.mark.asyncio
    async def test_connect_learns_session(
        self, client: SseSessionClient, registry: StreamRegistry
    ) -> None:
        assert client.session_id in registry
        assert str(client.endpoint_url) == (
            f"{BASE_URL}/mcp/messages?sessionId={client.session_id}"
        )

    @pytest.mark.asyncio
    async def test_initialize_and_list_tools(self, client: SseSessionClient) -> None:
        info = await client.initialize()
        tools = await client.list_tools()

        assert info["serverInfo"]["name"] == "kitchen-sink-server"
        assert {t["name"] for t in tools} == {"echo", "render"}

    @pytest.mark.asyncio
    async def test_render_round_trip(self, client: SseSessionClient) -> None:
        result = await client.call_tool("render", {"message": "Hello"})

        assert result["content"][0]["text"] == 'Widget displayed with message: "Hello"'
        assert result["structuredContent"]["message"] == "Hello"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, client: SseSessionClient) -> None:
        with pytest.raises(RemoteError) as exc_info:
            await client.call_tool("does_not_exist")

        assert exc_info.value.code == -32601
        assert exc_info.value.kind == "OperationNotFound"

    @pytest.mark.asyncio
    async def test_corrected_resubmission(self, client: SseSessionClient) -> None:
        with pytest.raises(RemoteError) as exc_info:
            await client.call_tool("render", {})
        assert exc_info.value.kind == "InvalidArguments"

        result = await client.call_tool("render", {"message": "second try"})
        assert result["structuredContent"]["message"] == "second try"

    @pytest.mark.asyncio
    async def test_submission_after_teardown(
        self, client: SseSessionClient, manager: StreamSessionManager
    ) -> None:
        manager.close(client.session_id)

        with pytest.raises(SubmissionError) as exc_info:
            await client.call_tool("echo", {"message": "late"})
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(
        self, client: SseSessionClient, manager: StreamSessionManager, router: MessageRouter
    ) -> None:
        async with httpx.AsyncClient(
            transport=_transport(manager, router), base_url=BASE_URL
        ) as http_client:
            async with SseSessionClient(BASE_URL, timeout=5.0, http_client=http_client) as other:
                assert other.session_id != client.session_id

                first = await client.call_tool("echo", {"message": "one"})
                second = await other.call_tool("echo", {"message": "two"})

        assert first["structuredContent"] == {"message": "one"}
        assert second["structuredContent"] == {"message": "two"}

    @pytest.mark.asyncio
    async def test_non_object_frames_do_not_stop_reader(
        self, client: SseSessionClient, manager: StreamSessionManager
    ) -> None:
        session = manager.get(client.session_id)
        await session.stream.send("[1, 2]")
        await session.stream.send("3")

        result = await client.call_tool("echo", {"message": "still here"})

        assert result["structuredContent"] == {"message": "still here"}
