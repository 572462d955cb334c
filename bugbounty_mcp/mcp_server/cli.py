from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from bugbounty_mcp.mcp_server.logging import JsonLogWriter
from bugbounty_mcp.mcp_server.registry import ToolRegistry
from bugbounty_mcp.mcp_server.server import McpServer
from bugbounty_mcp.mcp_server.settings import ServerSettings, load_dotenv_if_present
from bugbounty_mcp.mcp_server.transport import ResponseWriter, stdin_chunks
from bugbounty_mcp.toolpacks import (
    Executor,
    ToolpackExecutionError,
    ToolpackLoader,
    ToolpackValidationError,
)

LOGGER = logging.getLogger("bugbounty_mcp.cli")

_PYTHON_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the bug bounty MCP server (JSON-RPC over stdin/stdout)"
    )
    parser.add_argument(
        "--toolpacks",
        action="append",
        type=Path,
        default=None,
        help="Directory of *.tool.yaml definitions (repeatable; defaults to the core toolpacks)",
    )
    parser.add_argument(
        "--log-level",
        choices=sorted(_PYTHON_LOG_LEVELS),
        default=None,
        help="Logging level for stderr output",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for the JSONL tool invocation log",
    )
    parser.add_argument(
        "--tool-timeout-ms",
        type=int,
        default=None,
        help="Deadline applied to every tool call, in milliseconds",
    )
    parser.add_argument(
        "--drain-on-eof",
        action="store_true",
        default=None,
        help="Finish requests already received when stdin closes",
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> ServerSettings:
    settings = ServerSettings.from_env()
    return settings.with_overrides(
        toolpack_dirs=tuple(args.toolpacks) if args.toolpacks else None,
        log_level=args.log_level,
        log_dir=args.log_dir,
        tool_timeout_ms=args.tool_timeout_ms,
        drain_on_eof=args.drain_on_eof,
    )


def build_registry(settings: ServerSettings) -> ToolRegistry:
    loader = ToolpackLoader()
    for directory in settings.toolpack_dirs:
        loader.load_dir(directory)
    registry = ToolRegistry()
    Executor().register_all(loader.list(), registry)
    return registry


def _announce(server: McpServer) -> None:
    namespaces: dict[str, int] = {}
    for tool in server.registry:
        prefix = tool.name.split(".", 1)[0]
        namespaces[prefix] = namespaces.get(prefix, 0) + 1
    LOGGER.info(
        "%s %s started with %d tool(s)",
        server.settings.name,
        server.settings.version,
        len(server.registry),
    )
    for prefix, count in sorted(namespaces.items()):
        LOGGER.info("  - %s.* : %d tool(s)", prefix, count)


async def _run_server(settings: ServerSettings) -> None:
    registry = build_registry(settings)
    call_log = JsonLogWriter(settings.log_dir) if settings.log_dir is not None else None
    server = McpServer(settings, registry=registry, call_log=call_log)
    _announce(server)
    try:
        await server.serve(
            stdin_chunks(chunk_size=settings.read_chunk_size),
            ResponseWriter(sys.stdout.buffer),
        )
    finally:
        if call_log is not None:
            call_log.close()


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv_if_present()
    args = parse_args(argv)
    settings = build_settings(args)
    logging.basicConfig(
        level=_PYTHON_LOG_LEVELS[settings.log_level],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        asyncio.run(_run_server(settings))
    except (ToolpackValidationError, ToolpackExecutionError) as exc:
        LOGGER.error("Failed to load toolpacks: %s", exc)
        return 2
    except KeyboardInterrupt:
        LOGGER.info("Shutting down")
        return 0
    except OSError:
        LOGGER.exception("Transport failure; exiting")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
