from __future__ import annotations

import inspect
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .errors import ToolRegistrationError
from .models import ToolInfo

__all__ = ["ToolDescriptor", "ToolHandler", "ToolRegistry"]

ToolHandler = Callable[[Any], Any]

_EMPTY_SCHEMA: Mapping[str, Any] = MappingProxyType(
    {"type": "object", "properties": {}, "required": []}
)


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """A registered tool. The input schema is advertised, never enforced."""

    name: str
    description: str
    input_schema: Mapping[str, Any]
    handler: ToolHandler = field(repr=False, compare=False)
    timeout_ms: int | None = None

    def to_info(self) -> ToolInfo:
        return ToolInfo(
            name=self.name,
            description=self.description,
            inputSchema=dict(self.input_schema),
        )

    async def invoke(self, arguments: Any) -> Any:
        """Call the handler and await it when it returns an awaitable."""

        result = self.handler(arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


class ToolRegistry:
    """Name → tool mapping, populated at startup and frozen while serving."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def register(
        self,
        name: str,
        handler: ToolHandler,
        *,
        description: str = "",
        input_schema: Mapping[str, Any] | None = None,
        timeout_ms: int | None = None,
    ) -> ToolDescriptor:
        if self._frozen:
            raise ToolRegistrationError(
                f"Cannot register tool '{name}': registry is frozen while serving"
            )
        if not isinstance(name, str) or not name:
            raise ToolRegistrationError("Tool name must be a non-empty string")
        if name in self._tools:
            raise ToolRegistrationError(f"Duplicate tool name '{name}'")
        if not callable(handler):
            raise ToolRegistrationError(f"Handler for tool '{name}' is not callable")
        schema = _EMPTY_SCHEMA if input_schema is None else input_schema
        if not isinstance(schema, Mapping):
            raise ToolRegistrationError(f"Tool '{name}' inputSchema must be a mapping")
        if timeout_ms is not None and (not isinstance(timeout_ms, int) or timeout_ms <= 0):
            raise ToolRegistrationError(f"Tool '{name}' timeout_ms must be a positive integer")
        descriptor = ToolDescriptor(
            name=name,
            description=description,
            input_schema=MappingProxyType(dict(schema)),
            handler=handler,
            timeout_ms=timeout_ms,
        )
        self._tools[name] = descriptor
        return descriptor

    def tool(
        self,
        name: str,
        *,
        description: str | None = None,
        input_schema: Mapping[str, Any] | None = None,
        timeout_ms: int | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator form of :meth:`register`; the docstring is the fallback description."""

        def decorator(func: ToolHandler) -> ToolHandler:
            self.register(
                name,
                func,
                description=description
                if description is not None
                else inspect.cleandoc(func.__doc__ or ""),
                input_schema=input_schema,
                timeout_ms=timeout_ms,
            )
            return func

        return decorator

    def get(self, name: Any) -> ToolDescriptor | None:
        if not isinstance(name, str):
            return None
        return self._tools.get(name)

    def list(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def describe(self) -> list[dict[str, Any]]:
        return [tool.to_info().to_dict() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
