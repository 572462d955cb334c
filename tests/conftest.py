from __future__ import annotations

import os
import pathlib
import sys

import pytest

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from bugbounty_mcp.mcp_server import McpServer, ServerSettings, ToolRegistry  # noqa: E402
from tests.helpers.session import build_registry  # noqa: E402


@pytest.fixture(scope="session")
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("BUGBOUNTY_MCP_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def registry() -> ToolRegistry:
    return build_registry()


@pytest.fixture
def server(registry: ToolRegistry) -> McpServer:
    return McpServer(ServerSettings(drain_on_eof=True), registry=registry)
