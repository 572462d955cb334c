"""Newline-delimited framing for streamed JSON-RPC traffic."""

from __future__ import annotations

import codecs
import logging

__all__ = ["LineFramer"]

LOGGER = logging.getLogger(__name__)


class LineFramer:
    """Reassemble arbitrary chunks into ``\\n``-terminated frames.

    Chunk boundaries carry no meaning: a frame may span several chunks and a
    chunk may hold several frames. The incomplete tail is kept until more input
    arrives. ``bytes`` chunks are decoded incrementally as UTF-8, so a multibyte
    character split across chunks is reassembled rather than replaced.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """The carried-over fragment that has not been terminated yet."""

        return self._buffer

    def feed(self, chunk: bytes | str) -> list[str]:
        """Append ``chunk`` and return every frame it completes, in order."""

        if isinstance(chunk, bytes):
            text = self._decoder.decode(chunk)
        else:
            text = chunk
        if not text:
            return []
        self._buffer += text
        *frames, self._buffer = self._buffer.split("\n")
        return frames

    def close(self) -> int:
        """End of input: drop the unterminated tail and return its length."""

        self._buffer += self._decoder.decode(b"", final=True)
        dropped = len(self._buffer)
        if self._buffer.strip():
            LOGGER.debug("Discarding %d unterminated characters at end of input", dropped)
        self._buffer = ""
        return dropped
