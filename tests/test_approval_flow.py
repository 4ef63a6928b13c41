"""Approval resolution: approved operations run exactly once, rejections never run."""

from datetime import timedelta

import pytest
import pytest_asyncio

from driveAgent.hitl.schema import ApprovalRequest
from driveAgent.persistence.schema import utcnow
from driveAgent.runtime.service import ChatRequest

from tests.fakes import USER_ID, tool_call


@pytest_asyncio.fixture
async def pending_turn(service, chat_model):
    """A finished turn that left one delete_file approval pending."""
    chat_model.queue(tool_call("delete_file", {"fileId": "f1"}), "Please approve the deletion.")
    response = await service.chat(USER_ID, ChatRequest(message="delete the file report.pdf"))
    return response


class TestResolveApproval:
    @pytest.mark.asyncio
    async def test_unknown_id(self, service):
        outcome = await service.resolve_approval(USER_ID, "does-not-exist", True)

        assert outcome.success is False
        assert outcome.message == "Approval request not found"

    @pytest.mark.asyncio
    async def test_other_users_approval_is_not_found(self, service, tool_client, pending_turn):
        approval_id = pending_turn.pending_approvals[0].approval_id

        outcome = await service.resolve_approval("someone-else", approval_id, True)

        assert outcome.message == "Approval request not found"
        assert tool_client.called("delete_file") == []
        assert len(service.get_pending_approvals(USER_ID)) == 1

    @pytest.mark.asyncio
    async def test_expired(self, service, gateway, tool_client):
        request = gateway.store.add(
            ApprovalRequest(
                user_id=USER_ID,
                conversation_id="conv-1",
                agent_type="drive",
                tool_name="delete_file",
                args={"fileId": "f1", "userId": USER_ID},
                reason="Permanently deleting a file cannot be undone",
                created_at=utcnow() - timedelta(hours=1),
            )
        )

        outcome = await service.resolve_approval(USER_ID, request.id, True)

        assert outcome.success is False
        assert outcome.message == "Approval request has expired"
        assert tool_client.calls == []
        assert gateway.store.get(request.id) is None

    @pytest.mark.asyncio
    async def test_approve_executes_once(self, service, tool_client, notifier, store, pending_turn):
        tool_client.results["delete_file"] = "Deleted report.pdf"
        approval_id = pending_turn.pending_approvals[0].approval_id

        outcome = await service.resolve_approval(USER_ID, approval_id, True)

        assert outcome.success is True
        assert outcome.message == "Operation executed successfully"
        assert outcome.result == "Deleted report.pdf"
        assert tool_client.called("delete_file") == [{"fileId": "f1", "userId": USER_ID}]
        assert service.get_pending_approvals(USER_ID) == []

        again = await service.resolve_approval(USER_ID, approval_id, True)
        assert again.success is False
        assert len(tool_client.called("delete_file")) == 1

        conversation = store.load(pending_turn.conversation_id, USER_ID)
        last = conversation.messages[-1]
        assert last.role == "assistant"
        assert "delete_file was executed" in last.content
        assert last.tool_calls[0].result == "Deleted report.pdf"

        resolved = [payload for _, event, payload in notifier.events if event == "approval_resolved"]
        assert resolved == [
            {
                "approval_id": approval_id,
                "conversation_id": pending_turn.conversation_id,
                "tool_name": "delete_file",
                "status": "approved",
                "success": True,
            }
        ]

    @pytest.mark.asyncio
    async def test_reject_never_executes(self, service, tool_client, notifier, store, pending_turn):
        approval_id = pending_turn.pending_approvals[0].approval_id

        outcome = await service.resolve_approval(USER_ID, approval_id, False)

        assert outcome.success is True
        assert outcome.message == "Operation rejected"
        assert tool_client.called("delete_file") == []
        assert service.get_pending_approvals(USER_ID) == []

        conversation = store.load(pending_turn.conversation_id, USER_ID)
        assert conversation.messages[-1].content == "The user rejected the operation delete_file. It was not executed."
        assert notifier.events[-1][1] == "approval_resolved"
        assert notifier.events[-1][2]["status"] == "rejected"

        again = await service.resolve_approval(USER_ID, approval_id, True)
        assert again.success is False
        assert tool_client.called("delete_file") == []

    @pytest.mark.asyncio
    async def test_failed_execution_is_reported_and_consumed(self, service, tool_client, pending_turn):
        tool_client.results["delete_file"] = RuntimeError("backend down")
        approval_id = pending_turn.pending_approvals[0].approval_id

        outcome = await service.resolve_approval(USER_ID, approval_id, True)

        assert outcome.success is False
        assert outcome.message == "Operation failed"
        assert outcome.result == "Tool execution error: backend down"
        assert service.get_pending_approvals(USER_ID) == []

    @pytest.mark.asyncio
    async def test_large_result_is_truncated(self, service, tool_client, pending_turn):
        tool_client.results["delete_file"] = "y" * 25_000
        approval_id = pending_turn.pending_approvals[0].approval_id

        outcome = await service.resolve_approval(USER_ID, approval_id, True)

        assert outcome.result == "y" * 20_000 + "\n\n[Truncated: 20000 of 25000 chars]"

    @pytest.mark.asyncio
    async def test_pending_listing(self, service, pending_turn):
        pending = service.get_pending_approvals(USER_ID)

        assert [r.id for r in pending] == [pending_turn.pending_approvals[0].approval_id]
        assert pending[0].conversation_id == pending_turn.conversation_id
        assert service.get_pending_approvals("someone-else") == []
