"""Classify raw frames into requests, notifications and malformed frames."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "MalformedFrame",
    "Message",
    "Notification",
    "Request",
    "classify",
    "recover_request_id",
]

# Matches an "id" key anywhere in the text, including inside nested objects.
_ID_PATTERN = re.compile(r'"id"\s*:\s*([^,}\]]+)')
_INT_PATTERN = re.compile(r"^[+-]?\d+$")


@dataclass(slots=True)
class Request:
    """Incoming message carrying a non-null ``id``."""

    id: Any
    method: Any
    params: Any = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)


@dataclass(slots=True)
class Notification:
    """Incoming message without an ``id`` (or with ``id: null``)."""

    method: Any = None
    params: Any = None


@dataclass(slots=True)
class MalformedFrame:
    """Frame that failed to parse; ``id`` is the best-effort recovered id."""

    error: str
    id: Any = None

    @property
    def answerable(self) -> bool:
        return self.id is not None


Message = Request | Notification | MalformedFrame


def classify(frame: str) -> Message:
    """Parse ``frame`` strictly as JSON and classify it by its ``id``."""

    try:
        message = json.loads(frame, parse_constant=_reject_constant)
    except ValueError as exc:
        return MalformedFrame(error=str(exc), id=recover_request_id(frame))
    if not isinstance(message, Mapping):
        return Notification()
    request_id = message.get("id")
    if request_id is None:
        return Notification(method=message.get("method"), params=message.get("params"))
    return Request(
        id=request_id,
        method=message.get("method"),
        params=message.get("params"),
        raw=message,
    )


def recover_request_id(text: str) -> str | int | float | None:
    """Guess the request id from text that is not valid JSON.

    The first ``"id": <value>`` fragment wins, even when it belongs to a nested
    object. Quotes are stripped and numeric candidates become numbers. ``None``
    means no usable id (missing, or the literal ``null``).
    """

    match = _ID_PATTERN.search(text)
    if match is None:
        return None
    candidate = match.group(1).strip().replace('"', "").replace("'", "")
    if candidate.lower() == "null":
        return None
    return _coerce_number(candidate)


def _coerce_number(candidate: str) -> str | int | float:
    if _INT_PATTERN.match(candidate):
        return int(candidate)
    try:
        number = float(candidate)
    except ValueError:
        return candidate
    if number != number or number in (float("inf"), float("-inf")):
        return candidate
    if number.is_integer():
        return int(number)
    return number


def _reject_constant(token: str) -> Any:
    # NaN and the infinities are not JSON.
    raise ValueError(f"Unexpected token {token}")
