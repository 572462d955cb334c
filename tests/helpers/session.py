"""Helpers for driving an :class:`McpServer` in tests."""

from __future__ import annotations

import asyncio
import io
import json
from collections.abc import AsyncIterator, Iterable
from typing import Any

from bugbounty_mcp.mcp_server import McpServer, ToolRegistry
from bugbounty_mcp.mcp_server.transport import ResponseWriter


def build_registry() -> ToolRegistry:
    registry = ToolRegistry()

    @registry.tool(
        "echo",
        description="Echo arguments",
        input_schema={"type": "object", "properties": {"x": {"type": "integer"}}},
    )
    async def echo(arguments: Any) -> Any:
        return arguments

    @registry.tool("boom", description="Always fails")
    async def boom(arguments: Any) -> Any:
        raise RuntimeError("boom")

    return registry


def request(request_id: Any, method: str, params: dict[str, Any] | None = None) -> str:
    message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message)


def notification(method: str, params: dict[str, Any] | None = None) -> str:
    message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message)


def handle(server: McpServer, frame: str) -> dict[str, Any] | None:
    return asyncio.run(server.handle_frame(frame))


def handle_all(server: McpServer, frames: Iterable[str]) -> list[dict[str, Any] | None]:
    async def _run() -> list[dict[str, Any] | None]:
        return [await server.handle_frame(item) for item in frames]

    return asyncio.run(_run())


async def _chunks(items: Iterable[bytes | str]) -> AsyncIterator[bytes | str]:
    for item in items:
        yield item
        await asyncio.sleep(0)


def run_session(server: McpServer, chunks: Iterable[bytes | str]) -> list[dict[str, Any]]:
    """Feed ``chunks`` through ``server.serve`` and return the decoded replies."""

    sink = io.BytesIO()
    asyncio.run(server.serve(_chunks(list(chunks)), ResponseWriter(sink)))
    return [json.loads(line) for line in sink.getvalue().decode("utf-8").splitlines()]
