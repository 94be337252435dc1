"""Tests for agentcore.core.repair: tool call/result pairing."""

from __future__ import annotations

from agentcore.core.repair import (
    MISSING_RESULT_TEXT,
    default_convert_to_llm,
    repair_message_sequence,
)
from agentcore.types.messages import (
    Role,
    ToolCall,
    assistant_message,
    tool_result_message,
    user_message,
)


def _calls(*ids: str) -> list[ToolCall]:
    return [ToolCall(id=i, name="t") for i in ids]


def _shape(messages) -> list[tuple[str, str | None]]:
    return [(m.role.value, m.tool_call_id) for m in messages]


class TestRepairMessageSequence:
    def test_complete_history_unchanged(self) -> None:
        msgs = [
            user_message("go"),
            assistant_message(tool_calls=_calls("a", "b")),
            tool_result_message("a", "ra"),
            tool_result_message("b", "rb"),
            assistant_message("done"),
        ]
        assert repair_message_sequence(msgs) == msgs

    def test_missing_result_inserted_after_existing_results(self) -> None:
        msgs = [
            user_message("go"),
            assistant_message(tool_calls=_calls("a", "b")),
            tool_result_message("a", "ra"),
            user_message("next"),
        ]
        repaired = repair_message_sequence(msgs)
        assert _shape(repaired) == [
            ("user", None),
            ("assistant", None),
            ("tool", "a"),
            ("tool", "b"),
            ("user", None),
        ]
        synthetic = repaired[3]
        assert synthetic.text_content() == MISSING_RESULT_TEXT
        assert synthetic.metadata["is_error"] is True

    def test_truncated_tail(self) -> None:
        msgs = [user_message("go"), assistant_message(tool_calls=_calls("a"))]
        repaired = repair_message_sequence(msgs)
        assert _shape(repaired)[-1] == ("tool", "a")

    def test_orphan_result_removed(self) -> None:
        msgs = [
            tool_result_message("gone", "stale"),
            user_message("hi"),
            assistant_message("hello"),
        ]
        repaired = repair_message_sequence(msgs)
        assert all(m.role is not Role.TOOL for m in repaired)
        assert len(repaired) == 2

    def test_duplicate_results_keep_first(self) -> None:
        msgs = [
            assistant_message(tool_calls=_calls("a")),
            tool_result_message("a", "first"),
            tool_result_message("a", "second"),
        ]
        repaired = repair_message_sequence(msgs)
        assert [m.text_content() for m in repaired[1:]] == ["first"]

    def test_every_call_answered_exactly_once(self) -> None:
        msgs = [
            user_message("go"),
            assistant_message(tool_calls=_calls("a", "b", "c")),
            tool_result_message("c", "rc"),
            tool_result_message("x", "orphan"),
            assistant_message(tool_calls=_calls("d")),
        ]
        repaired = repair_message_sequence(msgs)
        answered = [m.tool_call_id for m in repaired if m.role is Role.TOOL]
        assert sorted(answered) == ["a", "b", "c", "d"]

    def test_idempotent(self) -> None:
        msgs = [
            tool_result_message("orphan", "x"),
            assistant_message(tool_calls=_calls("a", "b")),
            tool_result_message("b", "rb"),
            tool_result_message("b", "dup"),
            user_message("u"),
            assistant_message(tool_calls=_calls("c")),
        ]
        once = repair_message_sequence(msgs)
        assert repair_message_sequence(once) == once

    def test_input_not_mutated(self) -> None:
        msgs = [assistant_message(tool_calls=_calls("a"))]
        repair_message_sequence(msgs)
        assert len(msgs) == 1


class TestDefaultConvert:
    def test_drops_non_message_types(self) -> None:
        class StatusNote:
            role = Role.USER

        msgs = [user_message("a"), StatusNote()]
        assert default_convert_to_llm(msgs) == [msgs[0]]
