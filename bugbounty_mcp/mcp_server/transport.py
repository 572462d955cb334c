"""Byte-stream plumbing: chunk sources and the response writer."""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import AsyncIterator, Mapping
from typing import Any, BinaryIO

__all__ = ["ResponseWriter", "dumps_compact", "stdin_chunks", "stream_chunks"]


def dumps_compact(payload: Any) -> str:
    """Serialise ``payload`` as compact, strictly valid JSON.

    Non-ASCII text is kept as is. If the result would contain a lone surrogate
    (which UTF-8 cannot carry), everything is escaped instead. NaN and the
    infinities are rejected with :class:`ValueError`.
    """

    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    try:
        body.encode("utf-8")
    except UnicodeEncodeError:
        return json.dumps(payload, separators=(",", ":"), allow_nan=False)
    return body


class ResponseWriter:
    """Write one compact JSON value per line onto a byte sink.

    ``stream`` is either an :class:`asyncio.StreamWriter` (drained after each
    write) or a blocking binary file object such as ``sys.stdout.buffer``
    (flushed after each write).
    """

    def __init__(self, stream: asyncio.StreamWriter | BinaryIO) -> None:
        self._stream = stream

    @staticmethod
    def encode(envelope: Mapping[str, Any]) -> bytes:
        return dumps_compact(envelope).encode("utf-8") + b"\n"

    async def send(self, envelope: Mapping[str, Any]) -> None:
        self._stream.write(self.encode(envelope))
        if isinstance(self._stream, asyncio.StreamWriter):
            await self._stream.drain()
        else:
            self._stream.flush()


async def stream_chunks(
    reader: asyncio.StreamReader, *, chunk_size: int = 65_536
) -> AsyncIterator[bytes]:
    """Yield whatever bytes ``reader`` has available until EOF."""

    while True:
        chunk = await reader.read(chunk_size)
        if not chunk:
            break
        yield chunk


async def stdin_chunks(*, chunk_size: int = 65_536) -> AsyncIterator[bytes]:
    """Yield raw stdin chunks as they arrive, reading in a worker thread."""

    source = sys.stdin.buffer
    while True:
        chunk = await asyncio.to_thread(source.read1, chunk_size)
        if not chunk:
            break
        yield chunk
