from __future__ import annotations

import shutil
from collections.abc import Mapping
from typing import Any

from bugbounty_mcp.mcp_server.models import ToolOutcome
from bugbounty_mcp.toolpacks.process import CommandTimeoutError, command_exists, run_command


def echo(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return the arguments unchanged; handy for checking the transport."""

    return dict(payload)


async def which(payload: Mapping[str, Any]) -> ToolOutcome:
    """Report which of the requested commands are installed, with their versions."""

    commands = payload.get("commands")
    if not isinstance(commands, list) or not commands or not all(
        isinstance(c, str) and c for c in commands
    ):
        return ToolOutcome.fail("commands must be a non-empty list of strings")
    version_flag = payload.get("versionFlag")

    report: dict[str, Any] = {}
    for command in commands:
        if not command_exists(command):
            report[command] = {"installed": False}
            continue
        entry: dict[str, Any] = {"installed": True, "path": shutil.which(command)}
        if isinstance(version_flag, str) and version_flag:
            try:
                result = await run_command(command, [version_flag], timeout_ms=5_000)
            except (CommandTimeoutError, OSError) as exc:
                entry["version"] = None
                entry["versionError"] = str(exc)
            else:
                output = result.stdout or result.stderr
                entry["version"] = output.splitlines()[0] if output else None
        report[command] = entry
    return ToolOutcome.ok(report)
