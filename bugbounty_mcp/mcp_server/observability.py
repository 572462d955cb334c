"""Structured logging utilities for the MCP server."""

from __future__ import annotations

import json
import logging
from typing import Any

LOGGER_NAME = "bugbounty_mcp.mcp_server"

logger = logging.getLogger(LOGGER_NAME)


def log_event(*, method: Any, status: str, **extra: Any) -> None:
    """Emit a JSON log line describing one handled JSON-RPC message."""

    payload: dict[str, Any] = {
        "method": method,
        "status": status,
    }
    for key, value in extra.items():
        if value is not None:
            payload[key] = value
    logger.info(json.dumps(payload, sort_keys=True, default=str))
