"""Tests for the shared agent tool loop and the per-agent enrichment."""

import pytest
from langchain_core.messages import AIMessage, SystemMessage, ToolMessage

from driveAgent.agents.base_agent import (
    EMPTY_RESPONSE,
    ITERATION_LIMIT_MESSAGE,
    truncate_tool_result,
)
from driveAgent.agents.document_agent import DocumentAgent
from driveAgent.agents.drive_agent import DriveAgent
from driveAgent.agents.schema import AgentContext
from driveAgent.agents.search_agent import SearchAgent
from driveAgent.persistence.schema import Message
from driveAgent.planning.schema import TaskPlan, TaskStep
from driveAgent.utils.error_handler import BackendUnavailableError, ModelInvocationError

from tests.fakes import CHAT_MODEL_ID, USER_ID, tool_call, tool_calls


@pytest.fixture
def context():
    return AgentContext(user_id=USER_ID, type="drive")


@pytest.fixture
def history():
    return [Message(role="user", content="list my files")]


def tool_messages(call):
    return [m for m in call if isinstance(m, ToolMessage)]


class TestTruncation:
    def test_short_result_untouched(self):
        assert truncate_tool_result("abc", 10) == "abc"

    def test_long_result_capped_with_marker(self):
        assert truncate_tool_result("x" * 25, 10) == "x" * 10 + "\n\n[Truncated: 10 of 25 chars]"


class TestFinalAnswer:
    @pytest.mark.asyncio
    async def test_returns_model_text(self, agent_factory, chat_model, context, history):
        chat_model.queue("You have 3 files.")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert result.content == "You have 3 files."
        assert result.tool_calls == []
        assert result.pending_approvals == []
        assert len(chat_model.calls) == 1

    @pytest.mark.asyncio
    async def test_empty_answer_becomes_done(self, agent_factory, chat_model, context, history):
        chat_model.queue("   ")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert result.content == EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_only_allowed_tools_are_bound_without_identity(self, agent_factory, chat_model, context, history):
        chat_model.queue("ok")

        await agent_factory(DriveAgent).run(context, history, "conv-1")

        names = {t["function"]["name"] for t in chat_model.bound_tools}
        assert "list_files" in names
        assert "read_file" not in names
        assert "semantic_search_files" not in names
        for tool in chat_model.bound_tools:
            parameters = tool["function"]["parameters"]
            assert "userId" not in parameters.get("properties", {})
            assert "userId" not in parameters.get("required", [])

    @pytest.mark.asyncio
    async def test_history_is_not_mutated(self, agent_factory, chat_model, context, history):
        chat_model.queue(tool_call("list_files"), "done")
        before = [m.model_copy() for m in history]

        await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert history == before

    @pytest.mark.asyncio
    async def test_active_plan_frames_the_turn(self, agent_factory, chat_model, context, history):
        plan = TaskPlan(goal="Tidy up", steps=[TaskStep(id=1, title="List"), TaskStep(id=2, title="Move")])
        chat_model.queue("listed")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1", active_plan=plan)

        framing = [m for m in chat_model.calls[0] if isinstance(m, SystemMessage) and "[Active Task Plan]" in m.content]
        assert framing
        assert result.updated_plan is plan


class TestToolExecution:
    @pytest.mark.asyncio
    async def test_tool_call_gets_identity_and_result(self, agent_factory, chat_model, tool_client, context, history):
        tool_client.results["list_files"] = "a.txt\nb.txt"
        chat_model.queue(tool_call("list_files", {"folderId": "root"}), "Two files.")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert tool_client.called("list_files") == [{"folderId": "root", "userId": USER_ID}]
        assert result.content == "Two files."
        assert len(result.tool_calls) == 1
        recorded = result.tool_calls[0]
        assert recorded.tool_name == "list_files"
        assert recorded.args == {"folderId": "root", "userId": USER_ID}
        assert recorded.result == "a.txt\nb.txt"
        assert recorded.is_error is False

        reply = tool_messages(chat_model.calls[1])
        assert reply[0].content == "a.txt\nb.txt"
        assert reply[0].tool_call_id == "call_list_files"

    @pytest.mark.asyncio
    async def test_several_calls_in_one_response(self, agent_factory, chat_model, tool_client, context, history):
        chat_model.queue(
            tool_calls([("list_files", {}, "c1"), ("create_folder", {"name": "Archive"}, "c2")]),
            "Done both.",
        )

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert [c.tool_name for c in result.tool_calls] == ["list_files", "create_folder"]
        assert [m.tool_call_id for m in tool_messages(chat_model.calls[1])] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_tool_outside_allow_list_is_blocked(self, agent_factory, chat_model, tool_client, context, history):
        chat_model.queue(tool_call("read_file", {"fileId": "f1"}), "Sorry.")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert tool_client.called("read_file") == []
        assert result.tool_calls[0].result == "[BLOCKED] Operation read_file is not available to the drive agent."
        assert result.tool_calls[0].is_error is True

    @pytest.mark.asyncio
    async def test_allowed_tool_missing_from_catalog_is_blocked(self, agent_factory, chat_model, context, history):
        chat_model.queue(tool_call("whoami"), "Sorry.")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert result.tool_calls[0].result.startswith("[BLOCKED] Operation whoami is not available")

    @pytest.mark.asyncio
    async def test_invalid_arguments_are_reported(self, agent_factory, chat_model, tool_client, context, history):
        chat_model.queue(tool_call("create_folder", {}), "Need a name.")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert tool_client.called("create_folder") == []
        assert result.tool_calls[0].result.startswith("[INVALID ARGUMENTS]")
        assert "name" in result.tool_calls[0].result
        assert result.tool_calls[0].is_error is True

    @pytest.mark.asyncio
    async def test_unparseable_arguments_get_a_reply(self, agent_factory, chat_model, tool_client, context, history):
        malformed = AIMessage(
            content="",
            invalid_tool_calls=[
                {"name": "list_files", "args": "{bad", "id": "c9", "error": "bad json", "type": "invalid_tool_call"}
            ],
        )
        chat_model.queue(malformed, "Retrying later.")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert tool_client.calls == []
        assert result.tool_calls[0].result == "[INVALID ARGUMENTS] Could not parse arguments: bad json"
        assert tool_messages(chat_model.calls[1])[0].tool_call_id == "c9"
        assert result.content == "Retrying later."

    @pytest.mark.asyncio
    async def test_tool_exception_becomes_error_result(self, agent_factory, chat_model, tool_client, context, history):
        tool_client.results["list_files"] = RuntimeError("backend down")
        chat_model.queue(tool_call("list_files"), "The drive is unreachable.")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert result.tool_calls[0].result == "Tool execution error: backend down"
        assert result.tool_calls[0].is_error is True
        assert result.content == "The drive is unreachable."

    @pytest.mark.asyncio
    async def test_large_result_is_truncated(self, agent_factory, chat_model, tool_client, context, history):
        tool_client.results["list_files"] = "x" * 25_000
        chat_model.queue(tool_call("list_files"), "Lots of files.")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        expected = "x" * 20_000 + "\n\n[Truncated: 20000 of 25000 chars]"
        assert result.tool_calls[0].result == expected
        assert tool_messages(chat_model.calls[1])[0].content == expected


class TestGatewayIntegration:
    @pytest.mark.asyncio
    async def test_sensitive_operation_returns_approval(self, agent_factory, chat_model, tool_client, gateway, context, history):
        chat_model.queue(tool_call("delete_file", {"fileId": "f1"}), "Waiting for your approval.")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert tool_client.called("delete_file") == []
        assert len(result.pending_approvals) == 1
        approval = result.pending_approvals[0]
        assert approval.tool_name == "delete_file"
        assert approval.args == {"fileId": "f1", "userId": USER_ID}
        assert approval.reason == "Permanently deleting a file cannot be undone"

        recorded = result.tool_calls[0]
        assert recorded.is_error is False
        assert recorded.result.startswith(
            "[APPROVAL REQUIRED] This operation requires user approval: Permanently deleting a file cannot be undone."
        )

        stored = gateway.get_pending_approvals(USER_ID)
        assert [r.id for r in stored] == [approval.approval_id]
        assert stored[0].conversation_id == "conv-1"
        assert stored[0].agent_type == "drive"

    @pytest.mark.asyncio
    async def test_risky_arguments_are_blocked(self, agent_factory, chat_model, tool_client, context, history):
        chat_model.queue(tool_call("list_files", {"folderId": "../../etc"}), "Not allowed.")

        result = await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert tool_client.called("list_files") == []
        assert result.tool_calls[0].result == "[BLOCKED] Arguments reference a path outside the user's drive"
        assert result.tool_calls[0].is_error is True


class TestLimitsAndFailures:
    @pytest.mark.asyncio
    async def test_iteration_limit(self, agent_factory, chat_model, tool_client, context, history):
        chat_model.queue(*[tool_call("list_files", call_id=f"c{i}") for i in range(3)])

        result = await agent_factory(DriveAgent, max_iterations=3).run(context, history, "conv-1")

        assert result.content == ITERATION_LIMIT_MESSAGE
        assert len(result.tool_calls) == 3
        assert len(chat_model.calls) == 3
        assert len(tool_client.called("list_files")) == 3

    @pytest.mark.asyncio
    async def test_missing_model_raises_before_any_tool_call(self, agent_factory, model_resolver, tool_client, context, history):
        model_resolver.models.pop(CHAT_MODEL_ID)

        with pytest.raises(BackendUnavailableError):
            await agent_factory(SearchAgent).run(context, history, "conv-1")

        assert tool_client.calls == []

    @pytest.mark.asyncio
    async def test_model_failure_is_wrapped(self, agent_factory, chat_model, context, history):
        chat_model.queue(RuntimeError("connection reset"))

        with pytest.raises(ModelInvocationError) as exc_info:
            await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert "connection reset" in str(exc_info.value)


class TestEnrichment:
    @pytest.mark.asyncio
    async def test_drive_agent_adds_folder_path(self, agent_factory, chat_model, tool_client, history):
        tool_client.results["get_folder_path"] = "/Projects/2024"
        chat_model.queue("ok")
        context = AgentContext(user_id=USER_ID, folder_id="fold-1")

        await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert tool_client.called("get_folder_path") == [{"folderId": "fold-1", "userId": USER_ID}]
        system_prompt = chat_model.calls[0][0].content
        assert "Current folder id: fold-1" in system_prompt
        assert "Current folder path: /Projects/2024" in system_prompt
        assert context.notes == {}

    @pytest.mark.asyncio
    async def test_drive_agent_tolerates_failed_lookup(self, agent_factory, chat_model, tool_client, history):
        tool_client.results["get_folder_path"] = RuntimeError("timeout")
        chat_model.queue("ok")

        result = await agent_factory(DriveAgent).run(
            AgentContext(user_id=USER_ID, folder_id="fold-1"), history, "conv-1"
        )

        assert result.content == "ok"
        assert "Current folder path" not in chat_model.calls[0][0].content

    @pytest.mark.asyncio
    async def test_drive_agent_without_folder_skips_lookup(self, agent_factory, chat_model, tool_client, context, history):
        chat_model.queue("ok")

        await agent_factory(DriveAgent).run(context, history, "conv-1")

        assert tool_client.calls == []

    @pytest.mark.asyncio
    async def test_document_agent_loads_open_file(self, agent_factory, chat_model, tool_client, history):
        tool_client.results["read_file"] = "Quarterly budget: costs rose 4%."
        chat_model.queue("Summary: costs rose.")
        context = AgentContext(user_id=USER_ID, type="document", file_id="f1", file_name="budget.md")

        await agent_factory(DocumentAgent).run(context, history, "conv-1")

        assert tool_client.called("read_file") == [{"fileId": "f1", "userId": USER_ID}]
        system_prompt = chat_model.calls[0][0].content
        assert "Open file id: f1 (budget.md)" in system_prompt
        assert "Quarterly budget: costs rose 4%." in system_prompt
        assert context.document_content is None

    @pytest.mark.asyncio
    async def test_document_agent_keeps_supplied_content(self, agent_factory, chat_model, tool_client, history):
        chat_model.queue("ok")
        context = AgentContext(user_id=USER_ID, type="document", file_id="f1", document_content="Draft text")

        await agent_factory(DocumentAgent).run(context, history, "conv-1")

        assert tool_client.called("read_file") == []
        assert "Draft text" in chat_model.calls[0][0].content

    @pytest.mark.asyncio
    async def test_search_agent_adds_indexing_status(self, agent_factory, chat_model, tool_client, history):
        tool_client.results["get_indexing_status"] = "42 of 50 files indexed"
        chat_model.queue("ok")

        await agent_factory(SearchAgent).run(AgentContext(user_id=USER_ID, type="search"), history, "conv-1")

        assert tool_client.called("get_indexing_status") == [{"userId": USER_ID}]
        assert "Indexing status: 42 of 50 files indexed" in chat_model.calls[0][0].content

    @pytest.mark.asyncio
    async def test_search_agent_binds_only_read_only_tools(self, agent_factory, chat_model, history):
        chat_model.queue("ok")

        await agent_factory(SearchAgent).run(AgentContext(user_id=USER_ID, type="search"), history, "conv-1")

        names = {t["function"]["name"] for t in chat_model.bound_tools}
        assert names == {"search_files", "list_files", "read_file", "semantic_search_files", "get_indexing_status"}
