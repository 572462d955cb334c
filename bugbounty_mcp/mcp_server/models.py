"""Wire models for the MCP JSON-RPC server."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "CallToolResult",
    "ErrorObject",
    "ErrorResponse",
    "InitializeResult",
    "Response",
    "ServerInfo",
    "TextContent",
    "ToolInfo",
    "ToolOutcome",
]


class ErrorObject(BaseModel):
    """``error`` member of a JSON-RPC error response."""

    model_config = ConfigDict(extra="forbid")

    code: int
    message: str
    data: Any = None


class Response(BaseModel):
    """Successful reply to a request."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Any
    result: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()


class ErrorResponse(BaseModel):
    """Error reply to a request."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Any
    error: ErrorObject

    @classmethod
    def from_error(cls, request_id: Any, error: Mapping[str, Any]) -> ErrorResponse:
        return cls(id=request_id, error=ErrorObject(**error))

    def to_dict(self) -> dict[str, Any]:
        payload = self.model_dump()
        if self.error.data is None:
            payload["error"].pop("data", None)
        return payload


class ToolOutcome(BaseModel):
    """Normalised result a tool handler resolves to."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    data: Any = None
    error: str | None = None
    code: int | None = None

    @classmethod
    def ok(cls, data: Any = None) -> ToolOutcome:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, *, code: int | None = None, data: Any = None) -> ToolOutcome:
        return cls(success=False, data=data, error=error, code=code)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class CallToolResult(BaseModel):
    """``result`` of ``tools/call``: one text block holding the tool output as JSON."""

    content: list[TextContent] = Field(default_factory=list)

    @classmethod
    def from_text(cls, text: str) -> CallToolResult:
        return cls(content=[TextContent(text=text)])


class ToolInfo(BaseModel):
    """Public projection of a registered tool (handlers are never serialised)."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ServerInfo(BaseModel):
    name: str
    version: str


class InitializeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    protocol_version: str = Field(alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=lambda: {"tools": {}})
    server_info: ServerInfo = Field(alias="serverInfo")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
