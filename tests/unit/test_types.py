"""Tests for agentcore.types: messages, usage and serialization."""

from __future__ import annotations

from agentcore.types.messages import (
    ImageBlock,
    Message,
    Role,
    StopReason,
    TextBlock,
    ThinkingBlock,
    ToolCall,
    ToolCallBlock,
    Usage,
    assistant_message,
    collect_messages,
    message_from_dict,
    message_to_dict,
    tool_result_message,
    user_message,
)


class TestMessage:
    def test_accessors_concatenate_in_order(self) -> None:
        msg = Message(
            role=Role.ASSISTANT,
            content=(
                ThinkingBlock("step 1. "),
                TextBlock("Hello, "),
                ToolCallBlock(ToolCall(id="c1", name="read", args={"path": "a"})),
                ThinkingBlock("step 2."),
                TextBlock("world"),
            ),
        )
        assert msg.text_content() == "Hello, world"
        assert msg.thinking_content() == "step 1. step 2."
        assert msg.has_tool_calls()
        assert [c.id for c in msg.tool_calls()] == ["c1"]

    def test_empty_message(self) -> None:
        msg = Message(role=Role.ASSISTANT)
        assert msg.is_empty()
        assert msg.text_content() == ""
        assert not msg.has_tool_calls()

    def test_assistant_message_stop_reason(self) -> None:
        assert assistant_message("hi").stop_reason is StopReason.STOP
        call = ToolCall(id="c1", name="ls")
        assert assistant_message(tool_calls=[call]).stop_reason is StopReason.TOOL_USE
        assert assistant_message("x", stop_reason=StopReason.LENGTH).stop_reason is StopReason.LENGTH

    def test_tool_result_message_links_call(self) -> None:
        msg = tool_result_message("c9", "output", is_error=True)
        assert msg.role is Role.TOOL
        assert msg.tool_call_id == "c9"
        assert msg.metadata["is_error"] is True
        assert msg.text_content() == "output"

    def test_tool_call_id_none_for_other_roles(self) -> None:
        assert user_message("hi").tool_call_id is None

    def test_collect_messages_drops_custom_types(self) -> None:
        class Note:
            role = Role.USER

        msgs = [user_message("a"), Note(), assistant_message("b")]
        assert [m.text_content() for m in collect_messages(msgs)] == ["a", "b"]


class TestUsage:
    def test_add_is_fieldwise(self) -> None:
        total = Usage()
        total.add(Usage(input=10, output=5, cache_read=2, cache_write=1, total_tokens=18))
        total.add(Usage(input=1, output=1))
        assert total == Usage(input=11, output=6, cache_read=2, cache_write=1, total_tokens=18)

    def test_add_none_is_noop(self) -> None:
        total = Usage(input=3)
        total.add(None)
        assert total.input == 3

    def test_copy_is_independent(self) -> None:
        original = Usage(input=1)
        clone = original.copy()
        clone.add(Usage(input=5))
        assert original.input == 1


class TestSerialization:
    def test_all_block_types_survive(self) -> None:
        msg = Message(
            role=Role.ASSISTANT,
            content=(
                TextBlock("t"),
                ThinkingBlock("th"),
                ToolCallBlock(ToolCall(id="c1", name="grep", args={"q": "x"})),
                ImageBlock(data="aGk=", mime_type="image/png"),
            ),
            stop_reason=StopReason.TOOL_USE,
            usage=Usage(input=4, output=2),
            metadata={"k": "v"},
        )
        data = message_to_dict(msg)
        assert data["content"][2] == {
            "type": "toolCall",
            "tool_call": {"id": "c1", "name": "grep", "args": {"q": "x"}},
        }
        assert message_from_dict(data) == msg

    def test_minimal_dict(self) -> None:
        msg = message_from_dict({"role": "user", "content": [{"type": "text", "text": "hi"}]})
        assert msg.role is Role.USER
        assert msg.text_content() == "hi"
        assert msg.stop_reason is None
        assert msg.usage is None
