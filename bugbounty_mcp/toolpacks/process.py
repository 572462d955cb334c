"""Subprocess helpers for tools that wrap command-line scanners."""

from __future__ import annotations

import asyncio
import contextlib
import shutil
from dataclasses import asdict, dataclass
from typing import Any, Sequence

__all__ = ["CommandResult", "CommandTimeoutError", "command_exists", "run_command"]

DEFAULT_TIMEOUT_MS = 30_000


class CommandTimeoutError(Exception):
    """Raised when a command runs past its deadline; the process is killed."""


@dataclass(frozen=True, slots=True)
class CommandResult:
    stdout: str
    stderr: str
    code: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


async def run_command(
    command: str,
    args: Sequence[str] = (),
    *,
    timeout_ms: int | None = DEFAULT_TIMEOUT_MS,
) -> CommandResult:
    """Run ``command`` without a shell and collect its trimmed output.

    A non-zero exit status is reported in ``code``, not raised. ``timeout_ms``
    of ``None`` or ``0`` disables the deadline. A missing executable raises
    :class:`FileNotFoundError`.
    """

    process = await asyncio.create_subprocess_exec(
        command,
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    timeout = timeout_ms / 1000.0 if timeout_ms else None
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError as exc:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise CommandTimeoutError(f"Command timeout after {timeout_ms}ms") from exc
    return CommandResult(
        stdout=stdout.decode("utf-8", errors="replace").strip(),
        stderr=stderr.decode("utf-8", errors="replace").strip(),
        code=process.returncode if process.returncode is not None else 0,
    )


def command_exists(command: str) -> bool:
    return shutil.which(command) is not None
