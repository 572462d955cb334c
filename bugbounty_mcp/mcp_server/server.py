from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterable
from typing import Any

from .classifier import classify
from .dispatcher import Dispatcher, Lifecycle
from .framing import LineFramer
from .logging import JsonLogWriter
from .registry import ToolRegistry
from .settings import ServerSettings
from .transport import ResponseWriter

__all__ = ["McpServer"]

LOGGER = logging.getLogger(__name__)

_EOF = None


class McpServer:
    """JSON-RPC 2.0 tool server for a single peer over a byte stream.

    All protocol state (registry, lifecycle, framer buffer) lives on the
    instance, so independent servers can coexist in one process.
    """

    def __init__(
        self,
        settings: ServerSettings | None = None,
        *,
        registry: ToolRegistry | None = None,
        call_log: JsonLogWriter | None = None,
    ) -> None:
        self.settings = settings or ServerSettings()
        self.registry = registry if registry is not None else ToolRegistry()
        self._dispatcher = Dispatcher(self.registry, self.settings, call_log=call_log)

    @property
    def state(self) -> Lifecycle:
        return self._dispatcher.state

    def tool(self, name: str, **kwargs: Any):
        """Register a handler: ``@server.tool("recon.dns", description=..., input_schema=...)``."""

        return self.registry.tool(name, **kwargs)

    async def handle_frame(self, frame: str) -> dict[str, Any] | None:
        """Classify and dispatch one frame; ``None`` when no reply is owed."""

        payload = frame.strip()
        if not payload:
            return None
        return await self._dispatcher.dispatch(classify(payload))

    async def serve(self, chunks: AsyncIterable[bytes | str], writer: ResponseWriter) -> None:
        """Consume ``chunks`` until EOF, writing replies through ``writer``.

        Chunks are handed from a producer task to a single consumer through a
        queue, so the framer buffer has exactly one owner and frames are
        handled strictly in arrival order. At EOF the consumer is cancelled
        unless ``settings.drain_on_eof`` asks to finish what was received.
        Transport errors from either side propagate to the caller.
        """

        self.registry.freeze()
        queue: asyncio.Queue[bytes | str | None] = asyncio.Queue()
        consumer = asyncio.create_task(self._consume(queue, writer), name="mcp-consumer")
        producer = asyncio.create_task(self._produce(chunks, queue), name="mcp-producer")
        try:
            done, _ = await asyncio.wait(
                {producer, consumer}, return_when=asyncio.FIRST_COMPLETED
            )
            if consumer in done:
                # The consumer only finishes early when writing failed.
                consumer.result()
            producer.result()
            LOGGER.info("Input stream closed")
            if self.settings.drain_on_eof:
                await consumer
        finally:
            for task in (producer, consumer):
                if not task.done():
                    task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def _produce(
        self, chunks: AsyncIterable[bytes | str], queue: asyncio.Queue[bytes | str | None]
    ) -> None:
        try:
            async for chunk in chunks:
                await queue.put(chunk)
        finally:
            await queue.put(_EOF)

    async def _consume(
        self, queue: asyncio.Queue[bytes | str | None], writer: ResponseWriter
    ) -> None:
        framer = LineFramer()
        while True:
            chunk = await queue.get()
            if chunk is _EOF:
                framer.close()
                return
            for frame in framer.feed(chunk):
                response = await self.handle_frame(frame)
                if response is not None:
                    await writer.send(response)
