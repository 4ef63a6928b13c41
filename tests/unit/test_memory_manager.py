"""Tests for MemoryManager: memory state, message assembly and compression."""

from unittest.mock import AsyncMock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from driveAgent.context.memory_manager import MemoryManager, to_langchain_message
from driveAgent.persistence.schema import Message, Summary, ToolCall
from driveAgent.planning.schema import TaskPlan, TaskStep


def history(count):
    roles = ["user", "assistant"]
    return [Message(role=roles[i % 2], content=f"message {i}") for i in range(count)]


class TestBuildMemoryState:
    @pytest.mark.asyncio
    async def test_short_history_is_fully_visible(self):
        manager = MemoryManager()
        messages = history(8)

        state = await manager.build_memory_state(messages, [])

        assert state.window == messages
        assert state.summaries == []
        assert state.window_start == 0

    @pytest.mark.asyncio
    async def test_window_extends_back_until_a_full_batch_is_uncovered(self):
        manager = MemoryManager(max_history_messages=20, summary_batch_size=10)
        messages = history(25)

        state = await manager.build_memory_state(messages, [])

        assert state.summaries == []
        assert len(state.window) == 25

    @pytest.mark.asyncio
    async def test_old_messages_are_summarized_with_the_model(self):
        summarizer = AsyncMock(return_value="User asked about reports.")
        manager = MemoryManager(max_history_messages=20, summary_batch_size=10, summarizer=summarizer)
        messages = history(35)

        state = await manager.build_memory_state(messages, [])

        assert len(state.summaries) == 1
        summary = state.summaries[0]
        assert (summary.start_index, summary.end_index) == (0, 15)
        assert summary.content == "User asked about reports."
        assert state.window == messages[15:]
        assert "message 0" in summarizer.await_args.args[0]
        assert len(messages) == 35, "history must not be mutated"

    @pytest.mark.asyncio
    async def test_summarizer_failure_falls_back_to_extractive_summary(self):
        summarizer = AsyncMock(side_effect=RuntimeError("backend down"))
        manager = MemoryManager(max_history_messages=20, summary_batch_size=10, summarizer=summarizer)

        state = await manager.build_memory_state(history(35), [])

        content = state.summaries[0].content
        assert content.startswith("Earlier conversation (15 messages):")
        assert "- user: message 0" in content

    @pytest.mark.asyncio
    async def test_existing_summary_is_reused(self):
        manager = MemoryManager(max_history_messages=20, summary_batch_size=10)
        existing = Summary(content="old digest", start_index=0, end_index=15)

        state = await manager.build_memory_state(history(30), [existing])

        assert state.summaries == [existing]
        assert state.window_start == 15
        assert len(state.window) == 15

    @pytest.mark.asyncio
    async def test_summaries_beyond_history_are_dropped(self):
        manager = MemoryManager()
        stale = Summary(content="from a longer history", start_index=0, end_index=50)

        state = await manager.build_memory_state(history(5), [stale])

        assert state.summaries == []
        assert len(state.window) == 5


class TestAssembleMessages:
    @pytest.mark.asyncio
    async def test_order_is_system_summary_window_plan(self):
        manager = MemoryManager()
        plan = TaskPlan(goal="Tidy up", steps=[TaskStep(id=1, title="List files", agent_type="drive")])
        state = await manager.build_memory_state(history(2), [], plan)
        state.summaries = [Summary(content="digest", start_index=0, end_index=0)]

        result = manager.assemble_llm_messages("You are helpful.", state)

        assert isinstance(result[0], SystemMessage) and result[0].content == "You are helpful."
        assert result[1].content == "Summary of earlier conversation:\ndigest"
        assert isinstance(result[2], HumanMessage)
        assert isinstance(result[3], AIMessage)
        assert isinstance(result[-1], SystemMessage)
        assert "[Active Task Plan]" in result[-1].content
        assert "Current step: 1 - List files" in result[-1].content

    @pytest.mark.asyncio
    async def test_complete_plan_adds_no_framing(self):
        manager = MemoryManager()
        plan = TaskPlan(goal="Done", steps=[TaskStep(id=1, title="x", status="completed")], is_complete=True)
        state = await manager.build_memory_state(history(1), [], plan)

        result = manager.assemble_llm_messages("sys", state)

        assert len(result) == 2

    def test_tool_and_tool_only_messages_are_converted(self):
        tool = to_langchain_message(Message(role="tool", content="42 files"))
        used = to_langchain_message(
            Message(role="assistant", tool_calls=[ToolCall(tool_name="list_files", result="[]")])
        )

        assert isinstance(tool, AIMessage) and tool.content == "[Tool output]\n42 files"
        assert used.content == "Used tools: list_files"


class TestCompression:
    def test_under_cap_is_a_noop(self):
        manager = MemoryManager(max_context_chars=1000)
        messages = [SystemMessage(content="sys"), HumanMessage(content="hello")]

        assert manager.compress_if_needed(messages) is False
        assert len(messages) == 2

    def test_old_tool_results_are_shrunk_first(self):
        manager = MemoryManager(max_context_chars=1000, keep_recent_messages=2)
        messages = [
            SystemMessage(content="sys"),
            HumanMessage(content="list"),
            AIMessage(content="", tool_calls=[{"name": "list_files", "args": {}, "id": "c1"}]),
            ToolMessage(content="x" * 2000, tool_call_id="c1"),
            HumanMessage(content="thanks"),
            AIMessage(content="welcome"),
        ]

        assert manager.compress_if_needed(messages) is True

        assert len(messages) == 6
        shrunk = messages[3]
        assert isinstance(shrunk, ToolMessage)
        assert shrunk.tool_call_id == "c1"
        assert shrunk.content.startswith("x" * 150)
        assert shrunk.content.endswith("[...compressed, original 2000 chars]")
        assert manager.estimate_chars(messages) <= 1000

    def test_compression_is_idempotent_once_under_cap(self):
        manager = MemoryManager(max_context_chars=1000, keep_recent_messages=2)
        messages = [
            SystemMessage(content="sys"),
            ToolMessage(content="y" * 3000, tool_call_id="c1"),
            HumanMessage(content="a"),
            AIMessage(content="b"),
        ]
        manager.compress_if_needed(messages)
        snapshot = [m.content for m in messages]

        assert manager.compress_if_needed(messages) is False
        assert [m.content for m in messages] == snapshot

    def test_oldest_messages_dropped_but_recent_and_system_kept(self):
        manager = MemoryManager(max_context_chars=1000, keep_recent_messages=2)
        messages = [SystemMessage(content="sys")] + [HumanMessage(content=f"{i}" * 500) for i in range(6)]

        assert manager.compress_if_needed(messages) is True

        assert len(messages) == 3
        assert isinstance(messages[0], SystemMessage)
        assert messages[1].content == "4" * 500
        assert messages[2].content == "5" * 500

    def test_orphaned_tool_results_are_removed_with_their_call(self):
        manager = MemoryManager(max_context_chars=600, keep_recent_messages=1)
        messages = [
            SystemMessage(content="sys"),
            AIMessage(content="a" * 400, tool_calls=[{"name": "list_files", "args": {}, "id": "c1"}]),
            ToolMessage(content="short", tool_call_id="c1"),
            HumanMessage(content="b" * 300),
            AIMessage(content="c" * 100),
        ]

        manager.compress_if_needed(messages)

        assert not any(isinstance(m, ToolMessage) for m in messages)
        assert isinstance(messages[0], SystemMessage)
        assert messages[-1].content == "c" * 100
