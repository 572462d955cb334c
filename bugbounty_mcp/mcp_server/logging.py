"""JSONL log of tool invocations."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping
from uuid import uuid4


@dataclass
class ToolCallLogEvent:
    """One ``tools/call`` outcome as written to the invocation log."""

    ts: datetime
    request_id: Any
    tool: str
    status: str
    duration_ms: float
    input_bytes: int
    output_bytes: int
    error: Mapping[str, Any] | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Serialise the event to a JSON-compatible payload."""

        ts = self.ts
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        else:
            ts = ts.astimezone(timezone.utc)

        return {
            "ts": ts.isoformat().replace("+00:00", "Z"),
            "request_id": self.request_id,
            "tool": self.tool,
            "status": self.status,
            "duration_ms": float(self.duration_ms),
            "input_bytes": int(self.input_bytes),
            "output_bytes": int(self.output_bytes),
            "error": dict(self.error) if self.error is not None else None,
            "metadata": dict(self.metadata or {}),
        }


class JsonLogWriter:
    """Append tool-call events to a newline-delimited JSON file.

    Each process writes its own ``tool_calls-<run id>.jsonl`` under ``log_dir``;
    only the ``retention`` most recent files are kept.
    """

    def __init__(self, log_dir: str | Path, *, retention: int = 5) -> None:
        self._run_id = uuid4().hex
        self._retention = max(retention, 1)
        self._lock = threading.Lock()
        self._sequence = 0
        self._buffer: list[str] = []
        self._handle = None
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        self.path = directory / f"tool_calls-{self._run_id}.jsonl"
        self._enforce_retention()

    @property
    def run_id(self) -> str:
        return self._run_id

    def write(self, event: ToolCallLogEvent) -> None:
        """Append ``event``; lines that fail to write stay buffered for the next call."""

        payload = event.to_payload()
        payload["run_id"] = self._run_id
        payload["sequence"] = self._sequence
        self._sequence += 1

        serialised = json.dumps(payload, sort_keys=True, default=str)

        with self._lock:
            self._buffer.append(f"{serialised}\n")
            self._ensure_handle()
            self._flush_buffer()

    def close(self) -> None:
        """Flush buffered events and close the underlying file handle."""

        with self._lock:
            self._ensure_handle()
            self._flush_buffer()
            if self._handle is not None:
                try:
                    self._handle.flush()
                finally:
                    self._handle.close()
                    self._handle = None

    def __enter__(self) -> "JsonLogWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_handle(self) -> None:
        if self._handle is not None:
            return
        try:
            self._handle = self.path.open("a", encoding="utf-8")
        except OSError:
            self._handle = None

    def _flush_buffer(self) -> None:
        if not self._buffer or self._handle is None:
            return
        try:
            self._handle.writelines(self._buffer)
            self._handle.flush()
            self._buffer.clear()
        except OSError:
            # Leave the buffer intact and close the handle so we can retry.
            try:
                self._handle.close()
            finally:  # pragma: no branch - close best-effort
                self._handle = None

    def _enforce_retention(self) -> None:
        directory = self.path.parent
        try:
            candidates = sorted(
                (p for p in directory.glob("tool_calls-*.jsonl") if p.is_file()),
                key=lambda entry: entry.stat().st_mtime,
            )
        except OSError:
            return

        # The current run's file does not exist yet, so keep room for it.
        excess = len(candidates) - (self._retention - 1)
        if excess <= 0:
            return

        for old_path in candidates[:excess]:
            try:
                old_path.unlink()
            except OSError:
                continue


__all__ = ["JsonLogWriter", "ToolCallLogEvent"]
