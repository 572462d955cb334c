"""Process-level configuration for the MCP server."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

__all__ = ["ServerSettings", "load_dotenv_if_present"]

_ENV_PREFIX = "BUGBOUNTY_MCP_"
_DEFAULT_TOOLPACKS = Path(__file__).resolve().parent.parent / "toolpacks" / "core"
_LOG_LEVELS = {"DEBUG", "INFO", "WARN", "ERROR"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(_ENV_PREFIX + name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int | None) -> int | None:
    value = os.getenv(_ENV_PREFIX + name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.getenv(_ENV_PREFIX + name)
    if value is None:
        return default
    normalised = value.strip()
    return normalised or default


def _env_paths(name: str, default: tuple[Path, ...]) -> tuple[Path, ...]:
    value = _env_str(name)
    if value is None:
        return default
    return tuple(Path(entry) for entry in value.split(os.pathsep) if entry.strip())


def load_dotenv_if_present() -> None:
    """Load ``.env`` from the working directory (or its parents) when one exists."""

    from dotenv import find_dotenv, load_dotenv

    dotenv_path = find_dotenv(filename=".env", usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path)


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Server identity, transport behaviour and tool-call guardrails."""

    name: str = "bugbounty-mcp"
    version: str = "1.0.0"
    protocol_version: str = "2024-11-05"
    toolpack_dirs: tuple[Path, ...] = (_DEFAULT_TOOLPACKS,)
    tool_timeout_ms: int | None = None
    drain_on_eof: bool = False
    read_chunk_size: int = 65_536
    log_level: str = "INFO"
    log_dir: Path | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name must be a non-empty string")
        if self.tool_timeout_ms is not None and self.tool_timeout_ms <= 0:
            raise ValueError("tool_timeout_ms must be a positive integer")
        if self.read_chunk_size <= 0:
            raise ValueError("read_chunk_size must be a positive integer")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")

    @classmethod
    def from_env(cls) -> ServerSettings:
        defaults = cls()
        log_dir = _env_str("LOG_DIR")
        return cls(
            name=_env_str("NAME", defaults.name) or defaults.name,
            version=_env_str("VERSION", defaults.version) or defaults.version,
            protocol_version=(
                _env_str("PROTOCOL_VERSION", defaults.protocol_version)
                or defaults.protocol_version
            ),
            toolpack_dirs=_env_paths("TOOLPACKS", defaults.toolpack_dirs),
            tool_timeout_ms=_env_int("TOOL_TIMEOUT_MS", defaults.tool_timeout_ms),
            drain_on_eof=_env_bool("DRAIN_ON_EOF", defaults.drain_on_eof),
            read_chunk_size=(
                _env_int("READ_CHUNK_SIZE", defaults.read_chunk_size)
                or defaults.read_chunk_size
            ),
            log_level=(_env_str("LOG_LEVEL", defaults.log_level) or defaults.log_level).upper(),
            log_dir=Path(log_dir) if log_dir else None,
        )

    def with_overrides(self, **overrides: Any) -> ServerSettings:
        """Return a copy with every non-``None`` override applied."""

        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)
