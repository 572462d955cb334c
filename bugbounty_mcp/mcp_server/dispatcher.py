from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .classifier import MalformedFrame, Message, Notification, Request
from .errors import JsonRpcError
from .logging import JsonLogWriter, ToolCallLogEvent
from .models import (
    CallToolResult,
    ErrorResponse,
    InitializeResult,
    Response,
    ServerInfo,
    ToolOutcome,
)
from .observability import log_event
from .registry import ToolDescriptor, ToolRegistry
from .settings import ServerSettings
from .transport import dumps_compact

__all__ = ["Dispatcher", "Lifecycle"]

LOGGER = logging.getLogger(__name__)

_HANDSHAKE_METHOD = "initialize"
_KNOWN_NOTIFICATIONS = {"notifications/initialized", "notifications/cancelled"}


class Lifecycle(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


class Dispatcher:
    """Lifecycle gate plus the ``initialize`` / ``tools/list`` / ``tools/call`` table."""

    def __init__(
        self,
        registry: ToolRegistry,
        settings: ServerSettings | None = None,
        *,
        call_log: JsonLogWriter | None = None,
    ) -> None:
        self._registry = registry
        self._settings = settings or ServerSettings()
        self._call_log = call_log
        self._state = Lifecycle.UNINITIALIZED
        self._methods = {
            _HANDSHAKE_METHOD: self._initialize,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
        }

    @property
    def state(self) -> Lifecycle:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._state is Lifecycle.INITIALIZED

    async def dispatch(self, message: Message) -> dict[str, Any] | None:
        """Return the reply envelope for ``message``, or ``None`` when nothing is owed."""

        if isinstance(message, MalformedFrame):
            return self._handle_malformed(message)
        if isinstance(message, Notification):
            await self.handle_notification(message)
            return None
        return await self.handle_request(message)

    async def handle_request(self, request: Request) -> dict[str, Any]:
        start = time.perf_counter()
        method = request.method
        if not self.initialized and method != _HANDSHAKE_METHOD:
            response = self._error(request.id, JsonRpcError.NOT_INITIALIZED)
        else:
            handler = self._methods.get(method) if isinstance(method, str) else None
            if handler is None:
                response = self._error(request.id, JsonRpcError.METHOD_NOT_FOUND)
            else:
                params = request.params if isinstance(request.params, Mapping) else {}
                response = await handler(request.id, params)
        log_event(
            method=method,
            id=request.id,
            status="error" if "error" in response else "ok",
            code=response["error"]["code"] if "error" in response else None,
            duration_ms=round(_elapsed_ms(start), 3),
        )
        return response

    async def handle_notification(self, notification: Notification) -> None:
        if not self.initialized:
            LOGGER.debug("Dropping notification %r received before initialize", notification.method)
            return None
        if notification.method in _KNOWN_NOTIFICATIONS:
            LOGGER.debug("Notification %s params=%r", notification.method, notification.params)
        else:
            LOGGER.debug("Ignoring unknown notification %r", notification.method)
        return None

    def _handle_malformed(self, frame: MalformedFrame) -> dict[str, Any] | None:
        if not frame.answerable:
            LOGGER.warning("Dropping unparseable frame without a recoverable id: %s", frame.error)
            return None
        LOGGER.warning("Unparseable frame for recovered id %r: %s", frame.id, frame.error)
        log_event(method=None, id=frame.id, status="error", code=-32700)
        return self._error(frame.id, JsonRpcError.PARSE_ERROR, data=frame.error)

    async def _initialize(self, request_id: Any, params: Mapping[str, Any]) -> dict[str, Any]:
        if not self.initialized:
            client = params.get("clientInfo")
            LOGGER.info("Session initialized (client=%s)", client if client else "unknown")
        self._state = Lifecycle.INITIALIZED
        result = InitializeResult(
            protocolVersion=self._settings.protocol_version,
            serverInfo=ServerInfo(name=self._settings.name, version=self._settings.version),
        )
        return Response(id=request_id, result=result.to_dict()).to_dict()

    async def _list_tools(self, request_id: Any, params: Mapping[str, Any]) -> dict[str, Any]:
        return Response(id=request_id, result={"tools": self._registry.describe()}).to_dict()

    async def _call_tool(self, request_id: Any, params: Mapping[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        tool = self._registry.get(name)
        if tool is None:
            return self._error(
                request_id, JsonRpcError.METHOD_NOT_FOUND, message=f"Tool not found: {name}"
            )
        arguments = params.get("arguments") or {}
        start = time.perf_counter()
        timeout_ms = self._effective_timeout(tool)
        try:
            if timeout_ms is None:
                outcome = await tool.invoke(arguments)
            else:
                outcome = await asyncio.wait_for(tool.invoke(arguments), timeout_ms / 1000.0)
            text = _serialise_outcome(outcome)
        except Exception as exc:
            if timeout_ms is not None and isinstance(exc, asyncio.TimeoutError):
                message = f"Tool '{tool.name}' timed out after {timeout_ms}ms"
                LOGGER.warning("%s", message)
            else:
                LOGGER.exception("Tool '%s' failed", tool.name)
                message = str(exc)
            self._record_call(request_id, tool, start, arguments, error=message)
            return self._error(request_id, JsonRpcError.INTERNAL_ERROR, data=message)
        self._record_call(request_id, tool, start, arguments, output=text)
        return Response(id=request_id, result=CallToolResult.from_text(text).model_dump()).to_dict()

    def _effective_timeout(self, tool: ToolDescriptor) -> int | None:
        candidates = [
            value for value in (tool.timeout_ms, self._settings.tool_timeout_ms) if value is not None
        ]
        return min(candidates) if candidates else None

    def _record_call(
        self,
        request_id: Any,
        tool: ToolDescriptor,
        start: float,
        arguments: Any,
        *,
        output: str | None = None,
        error: str | None = None,
    ) -> None:
        if self._call_log is None:
            return
        self._call_log.write(
            ToolCallLogEvent(
                ts=datetime.now(timezone.utc),
                request_id=request_id,
                tool=tool.name,
                status="error" if error is not None else "ok",
                duration_ms=_elapsed_ms(start),
                input_bytes=_payload_size(arguments),
                output_bytes=len(output.encode("utf-8")) if output is not None else 0,
                error={"message": error} if error is not None else None,
            )
        )

    @staticmethod
    def _error(
        request_id: Any, name: str, *, message: str | None = None, data: Any = None
    ) -> dict[str, Any]:
        error = JsonRpcError.to_error(name, message=message, data=data)
        return ErrorResponse.from_error(request_id, error).to_dict()


def _serialise_outcome(outcome: Any) -> str:
    if isinstance(outcome, ToolOutcome):
        payload = outcome.to_payload()
    elif isinstance(outcome, BaseModel):
        payload = outcome.model_dump(mode="json")
    else:
        payload = outcome
    return dumps_compact(payload)


def _payload_size(payload: Any) -> int:
    try:
        return len(json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8"))
    except (TypeError, ValueError):
        return 0


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0
