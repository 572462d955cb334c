from __future__ import annotations

import pytest

from bugbounty_mcp.mcp_server.classifier import (
    MalformedFrame,
    Notification,
    Request,
    classify,
    recover_request_id,
)


def test_request_requires_non_null_id() -> None:
    message = classify('{"jsonrpc":"2.0","id":"a-1","method":"tools/list","params":{}}')
    assert isinstance(message, Request)
    assert message.id == "a-1"
    assert message.method == "tools/list"
    assert message.params == {}


@pytest.mark.parametrize(
    "frame",
    [
        '{"jsonrpc":"2.0","method":"tools/call","params":{"name":"echo"}}',
        '{"jsonrpc":"2.0","id":null,"method":"tools/call"}',
    ],
)
def test_missing_or_null_id_is_notification(frame: str) -> None:
    message = classify(frame)
    assert isinstance(message, Notification)
    assert message.method == "tools/call"


@pytest.mark.parametrize("frame", ["[1, 2, 3]", "42", '"text"', "null"])
def test_non_object_json_is_notification(frame: str) -> None:
    assert isinstance(classify(frame), Notification)


def test_zero_id_is_still_a_request() -> None:
    message = classify('{"jsonrpc":"2.0","id":0,"method":"initialize"}')
    assert isinstance(message, Request)
    assert message.id == 0


def test_truncated_frame_recovers_numeric_id() -> None:
    message = classify('{"id": 7, "method":')
    assert isinstance(message, MalformedFrame)
    assert message.answerable
    assert message.id == 7
    assert message.error


def test_truncated_frame_recovers_string_id() -> None:
    message = classify('{"jsonrpc":"2.0","id":"req-9","method":"tools/call",')
    assert isinstance(message, MalformedFrame)
    assert message.id == "req-9"


def test_malformed_frame_without_id_is_silent() -> None:
    message = classify('{"jsonrpc":"2.0","method":"tools/list"')
    assert isinstance(message, MalformedFrame)
    assert not message.answerable


def test_malformed_frame_with_null_id_is_silent() -> None:
    message = classify('{"id": null, "method": ')
    assert isinstance(message, MalformedFrame)
    assert message.id is None


def test_recovery_can_pick_up_nested_id() -> None:
    # Accepted limitation: the first "id" key wins wherever it appears.
    text = '{"jsonrpc":"2.0","params":{"id": 99},"id":1,'
    assert recover_request_id(text) == 99


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('"id": 12}', 12),
        ('"id":-3,', -3),
        ('"id": 1.5]', 1.5),
        ('"id": 2.0,', 2),
        ("\"id\": 'abc'", "abc"),
        ('"id": NULL', None),
        ('"identifier": 5', None),
        ("no id here", None),
    ],
)
def test_recover_request_id_values(text: str, expected: object) -> None:
    assert recover_request_id(text) == expected


@pytest.mark.parametrize(
    ("frame", "recovered"),
    [
        ('{"jsonrpc":"2.0","id":NaN,"method":"initialize"}', "NaN"),
        ('{"jsonrpc":"2.0","id":Infinity,"method":"initialize"}', "Infinity"),
        ('{"jsonrpc":"2.0","id":3,"method":"tools/call","params":{"x":-Infinity}}', 3),
    ],
)
def test_non_finite_constants_are_not_json(frame: str, recovered: object) -> None:
    message = classify(frame)
    assert isinstance(message, MalformedFrame)
    assert message.id == recovered
    assert "Unexpected token" in message.error
