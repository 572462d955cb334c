from __future__ import annotations

import asyncio
import copy
import importlib
import inspect
import logging
from collections.abc import Callable, Iterable
from typing import Any

from bugbounty_mcp.mcp_server.registry import ToolDescriptor, ToolRegistry

from .loader import Toolpack

__all__ = ["Executor", "ToolpackExecutionError"]

LOGGER = logging.getLogger(__name__)


class ToolpackExecutionError(Exception):
    """Raised when a Toolpack entrypoint cannot be resolved."""


class Executor:
    """Turn Toolpack definitions into registry handlers.

    Coroutine functions are awaited on the event loop; plain callables run in
    a worker thread so a blocking tool cannot stall the transport.
    """

    def __init__(self) -> None:
        self._resolved: dict[str, Callable[[Any], Any]] = {}

    def handler_for(self, toolpack: Toolpack) -> Callable[[Any], Any]:
        """Return an async handler bound to ``toolpack``'s entrypoint."""

        func = self._resolve_python_callable(toolpack)
        is_async = inspect.iscoroutinefunction(func)

        async def handler(arguments: Any) -> Any:
            payload = copy.deepcopy(arguments)
            if is_async:
                return await func(payload)
            result = await asyncio.to_thread(func, payload)
            if inspect.isawaitable(result):
                result = await result
            return result

        handler.__name__ = f"toolpack:{toolpack.id}"
        handler.__doc__ = toolpack.description
        return handler

    def register_all(
        self, toolpacks: Iterable[Toolpack], registry: ToolRegistry
    ) -> list[ToolDescriptor]:
        """Register every toolpack with ``registry`` and return the descriptors."""

        registered: list[ToolDescriptor] = []
        for toolpack in toolpacks:
            descriptor = registry.register(
                toolpack.id,
                self.handler_for(toolpack),
                description=toolpack.description,
                input_schema=toolpack.input_schema,
                timeout_ms=toolpack.timeout_ms,
            )
            LOGGER.debug("Registered tool %s from %s", toolpack.id, toolpack.source_path)
            registered.append(descriptor)
        return registered

    def _resolve_python_callable(self, toolpack: Toolpack) -> Callable[[Any], Any]:
        entrypoint = toolpack.execution.get("module")
        if not isinstance(entrypoint, str) or not entrypoint:
            raise ToolpackExecutionError(
                f"Toolpack {toolpack.id} python execution requires module entrypoint "
                "'pkg.mod:func'"
            )
        if entrypoint in self._resolved:
            return self._resolved[entrypoint]

        module_name, sep, attr_name = entrypoint.partition(":")
        if not sep or not module_name or not attr_name:
            raise ToolpackExecutionError(
                f"Toolpack {toolpack.id} python module entrypoint must use 'module:callable'"
            )

        try:
            module = importlib.import_module(module_name)
        except Exception as exc:  # pragma: no cover - import errors rely on Python
            raise ToolpackExecutionError(
                f"Toolpack {toolpack.id} failed to import module '{module_name}': {exc}"
            ) from exc

        try:
            func = getattr(module, attr_name)
        except AttributeError as exc:
            raise ToolpackExecutionError(
                f"Toolpack {toolpack.id} module '{module_name}' has no attribute '{attr_name}'"
            ) from exc

        if not callable(func):
            raise ToolpackExecutionError(
                f"Toolpack {toolpack.id} attribute '{attr_name}' is not callable"
            )

        self._resolved[entrypoint] = func
        return func
