"""Message model boundary tests."""

from __future__ import annotations

import pytest

from ama.errors import DeserializationError
from ama.messages import (
    FunctionCallRequestContent,
    FunctionCallResultContent,
    Message,
    TextContent,
    content_from_dict,
)

pytestmark = pytest.mark.unit


def test_string_content_is_one_text_item() -> None:
    msg = Message("user", "What is 2+2?")

    assert msg.content == (TextContent("What is 2+2?"),)
    assert msg.text == "What is 2+2?"
    assert not msg.has_function_call_requests
    assert not msg.has_function_call_results


def test_text_joins_text_items_with_blank_lines() -> None:
    msg = Message(
        "assistant",
        [
            TextContent("first"),
            FunctionCallRequestContent("call_1", "function", "echo", {"value": "x"}),
            TextContent("second"),
        ],
    )

    assert msg.text == "first\n\nsecond"
    assert [r.id for r in msg.function_call_requests] == ["call_1"]


def test_empty_content_is_rejected() -> None:
    with pytest.raises(ValueError, match="at least one content item"):
        Message("user", [])


def test_unknown_role_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown message role"):
        Message("robot", "hi")  # type: ignore[arg-type]


def test_unsupported_content_element_is_rejected() -> None:
    with pytest.raises(TypeError, match="Unsupported message content element"):
        Message("user", [42])


def test_messages_are_immutable() -> None:
    msg = Message("user", "hi")

    with pytest.raises(AttributeError):
        msg.role = "assistant"  # type: ignore[misc]


def test_persisted_form_uses_camel_case_request_keys() -> None:
    msg = Message(
        "assistant",
        [FunctionCallRequestContent("call_1", "function", "web_search", {"query": "q"})],
    )

    assert msg.to_dict() == {
        "role": "assistant",
        "content": [
            {
                "type": "function_call_request",
                "id": "call_1",
                "functionType": "function",
                "functionName": "web_search",
                "functionArguments": {"query": "q"},
            }
        ],
    }


def test_json_round_trip_preserves_content_order() -> None:
    original = Message(
        "tool",
        [FunctionCallResultContent("call_1", "résultat"), TextContent("note")],
    )

    restored = Message.from_json(original.to_json())

    assert restored == original
    assert "résultat" in original.to_json()


def test_from_dict_accepts_plain_string_content() -> None:
    assert Message.from_dict({"role": "user", "content": "hi"}).text == "hi"


@pytest.mark.parametrize(
    "data",
    [
        {"role": "user", "content": [{"type": "image", "url": "x"}]},
        {"role": "user", "content": [{"type": "text"}]},
        {"role": "assistant", "content": [{"type": "function_call_request", "id": "c"}]},
        {"role": "robot", "content": "hi"},
        {"role": ["user"], "content": "hi"},
        {"role": "user", "content": []},
        {"role": "user", "content": ["hi"]},
        {"role": "user"},
    ],
)
def test_malformed_persisted_messages_raise(data: dict) -> None:
    with pytest.raises(DeserializationError):
        Message.from_dict(data)


def test_from_json_rejects_invalid_json() -> None:
    with pytest.raises(DeserializationError, match="not valid JSON"):
        Message.from_json("{not json")


def test_function_arguments_must_be_an_object() -> None:
    with pytest.raises(DeserializationError, match="functionArguments must be an object"):
        content_from_dict(
            {
                "type": "function_call_request",
                "id": "c",
                "functionName": "echo",
                "functionArguments": ["x"],
            }
        )


def test_unknown_content_type_carries_hint() -> None:
    with pytest.raises(DeserializationError) as exc:
        content_from_dict({"type": "audio"})
    assert exc.value.hint is not None
