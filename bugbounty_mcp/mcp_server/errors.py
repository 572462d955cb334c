from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

__all__ = ["JsonRpcError", "ToolRegistrationError"]


class ToolRegistrationError(Exception):
    """Raised when a tool cannot be added to the registry."""


@dataclass(frozen=True)
class _ErrorSpec:
    name: str
    description: str
    code: int
    message: str


@dataclass(frozen=True)
class _ErrorTemplate:
    """Immutable template describing JSON-RPC error payload fields."""

    code: int
    message: str

    def build_payload(self, *, message: str | None = None, data: Any = None) -> dict[str, Any]:
        """Materialise a JSON-RPC error object without sharing state."""

        payload: dict[str, Any] = {"code": self.code, "message": message or self.message}
        if data is not None:
            payload["data"] = data
        return payload


class JsonRpcError:
    """JSON-RPC error codes emitted by the server."""

    PARSE_ERROR = "PARSE_ERROR"
    METHOD_NOT_FOUND = "METHOD_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_INITIALIZED = "NOT_INITIALIZED"

    _SPECS: tuple[_ErrorSpec, ...] = (
        _ErrorSpec(PARSE_ERROR, "Frame is not valid JSON", -32700, "Parse error"),
        _ErrorSpec(
            METHOD_NOT_FOUND, "Unknown method or unregistered tool", -32601, "Method not found"
        ),
        _ErrorSpec(
            INTERNAL_ERROR, "Tool handler raised or timed out", -32603, "Internal error"
        ),
        _ErrorSpec(
            NOT_INITIALIZED,
            "Method invoked before the initialize handshake",
            -32002,
            "Server not initialized",
        ),
    )

    _TEMPLATES: dict[str, _ErrorTemplate] = {
        spec.name: _ErrorTemplate(code=spec.code, message=spec.message) for spec in _SPECS
    }

    @staticmethod
    def _lookup(name: str, mapping: Mapping[str, _ErrorTemplate]) -> _ErrorTemplate:
        if name not in mapping:
            raise KeyError(f"{name} does not have a JSON-RPC error mapping")
        return mapping[name]

    @classmethod
    def to_error(cls, name: str, *, message: str | None = None, data: Any = None) -> dict[str, Any]:
        """Return the ``error`` member for ``name``, optionally overriding the message."""

        return cls._lookup(name, cls._TEMPLATES).build_payload(message=message, data=data)
