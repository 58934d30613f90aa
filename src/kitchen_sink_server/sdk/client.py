"""SDK Client - talks to a kitchen sink server over SSE.

Opens the stream, learns the message endpoint from the first frame, then
posts JSON-RPC requests and resolves each one when its response arrives on
the stream.

Usage:
    async with SseSessionClient("http://localhost:8000") as client:
        await client.initialize()
        result = await client.call_tool("echo", {"message": "hi"})
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from typing import Any

import httpx

from ..protocol.types import LATEST_PROTOCOL_VERSION
from ..transport.sse import iter_events

logger = logging.getLogger(__name__)


class RemoteError(Exception):
    """The server answered a request with a JSON-RPC error."""

    def __init__(self, code: int, message: str, data: Any | None = None) -> None:
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data

    @property
    def kind(self) -> str | None:
        return self.data.get("kind") if isinstance(self.data, dict) else None


class SubmissionError(Exception):
    """The server refused a POST (bad or unknown session, oversized body...)."""

    def __init__(self, status_code: int, text: str) -> None:
        super().__init__(f"Submission rejected with {status_code}: {text}")
        self.status_code = status_code
        self.text = text


class SseSessionClient:
    """Client for one server session."""

    def __init__(
        self,
        base_url: str,
        sse_path: str = "/mcp",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self.sse_path = sse_path
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None
        self._response: httpx.Response | None = None
        self._reader: asyncio.Task[None] | None = None
        self._endpoint: asyncio.Future[str] | None = None
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._ids = itertools.count(1)
        self.session_id: str | None = None
        self.endpoint_url: httpx.URL | None = None

    async def __aenter__(self) -> SseSessionClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, read=None),  # No read timeout for SSE
            )
        return self._client

    async def connect(self) -> str:
        """Open the stream and wait for the endpoint frame.

        Returns:
            The session id assigned by the server
        """
        client = self._ensure_client()
        self._endpoint = asyncio.get_running_loop().create_future()

        response = await client.send(client.build_request("GET", self.sse_path), stream=True)
        response.raise_for_status()
        self._response = response
        self._reader = asyncio.create_task(self._read_events(response))

        endpoint = await asyncio.wait_for(asyncio.shield(self._endpoint), self.timeout)
        self.endpoint_url = httpx.URL(self.base_url).join(endpoint)
        self.session_id = self.endpoint_url.params.get("sessionId")
        logger.debug(f"Connected, session {self.session_id}")
        return self.session_id or ""

    async def _read_events(self, response: httpx.Response) -> None:
        error: BaseException = ConnectionError("Stream closed")
        try:
            async for event in iter_events(response.aiter_lines()):
                if event.event == "endpoint":
                    if self._endpoint and not self._endpoint.done():
                        self._endpoint.set_result(event.data)
                elif event.event == "message":
                    self._deliver(event.data)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"SSE stream failed: {e}")
            error = e
        finally:
            self._fail_pending(error)

    def _deliver(self, data: str) -> None:
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse SSE data: {data}")
            return
        if not isinstance(message, dict):
            logger.warning(f"Ignoring non-object SSE message: {data}")
            return

        future = self._pending.pop(message.get("id"), None)
        if future is None:
            logger.debug(f"Unsolicited message: {data}")
            return
        if future.done():
            return

        if message.get("error") is not None:
            error = message["error"]
            future.set_exception(
                RemoteError(error.get("code", 0), error.get("message", ""), error.get("data"))
            )
        else:
            future.set_result(message.get("result"))

    def _fail_pending(self, error: BaseException) -> None:
        if self._endpoint and not self._endpoint.done():
            self._endpoint.set_exception(error)
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def _post(self, message: dict[str, Any]) -> None:
        if self.endpoint_url is None:
            raise RuntimeError("Not connected. Call connect() first.")
        client = self._ensure_client()
        response = await client.post(self.endpoint_url, json=message)
        if response.status_code != 202:
            raise SubmissionError(response.status_code, response.text)

    async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send a request and wait for its response on the stream.

        Raises:
            SubmissionError: The POST was not accepted
            RemoteError: The server answered with a JSON-RPC error
        """
        request_id = next(self._ids)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params

        try:
            await self._post(message)
        except Exception:
            self._pending.pop(request_id, None)
            raise

        return await asyncio.wait_for(future, self.timeout)

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        await self._post(message)

    async def initialize(self, client_name: str = "kitchen-sink-client") -> dict[str, Any]:
        result = await self.request(
            "initialize",
            {
                "protocolVersion": LATEST_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": client_name, "version": "0.1.0"},
            },
        )
        await self.notify("notifications/initialized")
        return result

    async def list_tools(self) -> list[dict[str, Any]]:
        result = await self.request("tools/list")
        return result.get("tools", [])

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("tools/call", {"name": name, "arguments": arguments or {}})

    async def close(self) -> None:
        """Close the stream and release the HTTP client."""
        if self._reader is not None:
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
            self._reader = None
        if self._response is not None:
            await self._response.aclose()
            self._response = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self._fail_pending(ConnectionError("Client closed"))
