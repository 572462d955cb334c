from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from bugbounty_mcp.mcp_server.logging import JsonLogWriter, ToolCallLogEvent


def _event(request_id: int, *, status: str = "ok") -> ToolCallLogEvent:
    return ToolCallLogEvent(
        ts=datetime(2024, 11, 5, 12, 0, tzinfo=timezone(timedelta(hours=2))),
        request_id=request_id,
        tool="recon.subfinder",
        status=status,
        duration_ms=12,
        input_bytes=20,
        output_bytes=0 if status == "error" else 42,
        error={"message": "boom"} if status == "error" else None,
    )


def test_event_payload_normalises_timestamp_to_utc() -> None:
    payload = _event(1).to_payload()
    assert payload["ts"] == "2024-11-05T10:00:00Z"
    assert payload["duration_ms"] == 12.0
    assert payload["error"] is None
    assert payload["metadata"] == {}


def test_writer_appends_sequenced_lines(tmp_path: Path) -> None:
    with JsonLogWriter(tmp_path / "logs") as writer:
        writer.write(_event(1))
        writer.write(_event(2, status="error"))

    assert writer.path.name == f"tool_calls-{writer.run_id}.jsonl"
    records = [json.loads(line) for line in writer.path.read_text(encoding="utf-8").splitlines()]
    assert [record["sequence"] for record in records] == [0, 1]
    assert {record["run_id"] for record in records} == {writer.run_id}
    assert records[1]["status"] == "error"
    assert records[1]["error"] == {"message": "boom"}


def test_retention_keeps_most_recent_files(tmp_path: Path) -> None:
    for index in range(4):
        stale = tmp_path / f"tool_calls-old{index}.jsonl"
        stale.write_text("{}\n", encoding="utf-8")
        os.utime(stale, (1_000 + index, 1_000 + index))

    writer = JsonLogWriter(tmp_path, retention=3)
    writer.write(_event(1))
    writer.close()

    remaining = sorted(path.name for path in tmp_path.glob("tool_calls-*.jsonl"))
    assert remaining == sorted(
        ["tool_calls-old2.jsonl", "tool_calls-old3.jsonl", writer.path.name]
    )
