"""Agent service: the per-turn pipeline and the approval resolution path.

Per turn: validate -> load conversation -> route -> plan -> orchestrate or run
one agent -> persist -> notify. Only backend-unavailable, model-invocation
(outside orchestration), not-found and invalid-request errors reach the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel

from driveAgent.agents.base_agent import AgentRunResult, BaseAgent, truncate_tool_result
from driveAgent.agents.router import AgentRouter
from driveAgent.agents.schema import AgentContext, AgentType, RouteDecision
from driveAgent.hitl.gateway import CapabilityGateway
from driveAgent.hitl.schema import ApprovalRequest, PendingApproval
from driveAgent.notifications import APPROVAL_REQUESTED, APPROVAL_RESOLVED, LoggingNotifier, Notifier, safe_notify
from driveAgent.persistence.conversation_store import ConversationStore
from driveAgent.persistence.schema import Conversation, ConversationListItem, Message, ToolCall
from driveAgent.planning.orchestrator import RESULT_DIGEST_CHARS, TaskOrchestrator
from driveAgent.planning.planner import TaskPlanner
from driveAgent.planning.schema import TaskPlan
from driveAgent.planning.tracker import TaskPlanTracker
from driveAgent.tools.catalog import ToolCatalog
from driveAgent.utils.error_handler import ConversationNotFoundError, InvalidRequestError
from driveAgent.utils.logging_utils import log_agent_response, log_user_message

LOGGER = logging.getLogger(__name__)


class ChatContext(BaseModel):
    """UI location supplied by the caller."""

    type: Optional[str] = None
    folder_id: Optional[str] = None
    file_id: Optional[str] = None
    file_name: Optional[str] = None
    document_content: Optional[str] = None


class ChatRequest(BaseModel):
    message: str
    conversation_id: Optional[str] = None
    context: Optional[ChatContext] = None


class ChatResponse(BaseModel):
    conversation_id: str
    agent_type: AgentType
    message: str
    route_decision: RouteDecision
    task_plan: Optional[TaskPlan] = None
    pending_approvals: Optional[List[PendingApproval]] = None


class ApprovalResult(BaseModel):
    success: bool
    result: Optional[str] = None
    message: str


class ServiceStatus(BaseModel):
    enabled: bool
    model: str
    provider: str


class AgentService:
    """Entry point for chat turns, approvals and conversation management."""

    def __init__(
        self,
        *,
        store: ConversationStore,
        router: AgentRouter,
        planner: TaskPlanner,
        orchestrator: TaskOrchestrator,
        agents: Mapping[str, BaseAgent],
        gateway: CapabilityGateway,
        catalog: ToolCatalog,
        notifier: Optional[Notifier] = None,
        tracker: Optional[TaskPlanTracker] = None,
        max_message_length: int = 4000,
        max_tool_result_chars: int = 20_000,
        status: Optional[ServiceStatus] = None,
    ):
        self.store = store
        self.router = router
        self.planner = planner
        self.orchestrator = orchestrator
        self.agents: Dict[str, BaseAgent] = dict(agents)
        self.gateway = gateway
        self.catalog = catalog
        self.notifier = notifier or LoggingNotifier()
        self.tracker = tracker or TaskPlanTracker()
        self.max_message_length = max_message_length
        self.max_tool_result_chars = max_tool_result_chars
        self.status = status or ServiceStatus(enabled=True, model="", provider="")

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(self, user_id: str, request: ChatRequest) -> ChatResponse:
        """Handle one user turn.

        Raises:
            InvalidRequestError: Empty or oversized message
            ConversationNotFoundError: Unknown, inactive or foreign conversation id
            BackendUnavailableError: No model configured
            ModelInvocationError: Model call failed outside plan orchestration
        """
        message = self._validate_message(request.message)
        conversation = self._load_or_create(user_id, request.conversation_id)
        log_user_message(LOGGER, message)

        conversation.append(Message(role="user", content=message))

        active_plan = conversation.active_plan
        resuming = False
        if active_plan is not None and not active_plan.is_complete:
            if self.planner.is_continuation(message):
                resuming = True
                LOGGER.info(f"Resuming plan at step {active_plan.current_step}: {active_plan.goal}")
            else:
                LOGGER.info(f"New request abandons unfinished plan: {active_plan.goal}")
                active_plan = None
                conversation.active_plan = None

        ui = request.context or ChatContext()
        sticky = conversation.agent_type if (active_plan is None or active_plan.is_complete) else None
        context_text = self._context_text(ui, conversation)
        route = await self.router.route(
            message,
            explicit_type=ui.type,
            sticky_type=sticky,
            context_text=context_text,
        )

        context = AgentContext(
            user_id=user_id,
            type=route.agent_type,
            folder_id=ui.folder_id,
            file_id=ui.file_id,
            file_name=ui.file_name,
            document_content=ui.document_content,
        )

        task_plan: Optional[TaskPlan] = None
        if resuming:
            task_plan = active_plan
        elif await self.planner.should_plan_task(message, context_text):
            task_plan = await self.planner.generate_task_plan(message, context_text)

        agent_type: str = route.agent_type
        if task_plan is not None and self.orchestrator.needs_orchestration(task_plan):
            outcome = await self.orchestrator.execute_plan(
                task_plan,
                context,
                conversation.messages,
                conversation.id,
                route.agent_type,
                summaries=conversation.summaries,
            )
            content = outcome.content
            tool_calls = outcome.tool_calls
            pending = outcome.pending_approvals
            summaries = outcome.updated_summaries
            task_plan = outcome.plan
        elif task_plan is not None:
            agent_type, run, task_plan = await self._run_single_step(task_plan, context, conversation)
            content, tool_calls, pending, summaries = (
                run.content,
                run.tool_calls,
                run.pending_approvals,
                run.updated_summaries,
            )
        else:
            run = await self._agent_for(agent_type).run(
                context,
                conversation.messages,
                conversation.id,
                summaries=conversation.summaries,
            )
            content, tool_calls, pending, summaries = (
                run.content,
                run.tool_calls,
                run.pending_approvals,
                run.updated_summaries,
            )

        conversation.append(Message(role="assistant", content=content, tool_calls=tool_calls or None))
        conversation.agent_type = agent_type
        conversation.summaries = summaries
        conversation.active_plan = task_plan
        conversation.last_route = route
        self.store.save(conversation)
        log_agent_response(LOGGER, content)

        if pending:
            await safe_notify(
                self.notifier,
                user_id,
                APPROVAL_REQUESTED,
                {
                    "conversation_id": conversation.id,
                    "approvals": [p.model_dump() for p in pending],
                },
            )

        return ChatResponse(
            conversation_id=conversation.id,
            agent_type=agent_type,
            message=content,
            route_decision=route,
            task_plan=task_plan,
            pending_approvals=pending or None,
        )

    async def _run_single_step(self, plan: TaskPlan, context: AgentContext, conversation: Conversation):
        """Run a one-step plan directly, with plan framing and tracker updates."""
        step = plan.get_step(plan.current_step)
        agent_type = (step.agent_type if step else None) or context.type
        started = self.tracker.start_current_step(plan)
        run: AgentRunResult = await self._agent_for(agent_type).run(
            context.model_copy(update={"type": agent_type}),
            conversation.messages,
            conversation.id,
            summaries=conversation.summaries,
            active_plan=started,
        )
        if run.pending_approvals:
            return agent_type, run, plan
        return agent_type, run, self.tracker.complete_current_step(started, run.content[:RESULT_DIGEST_CHARS])

    def _agent_for(self, agent_type: str) -> BaseAgent:
        agent = self.agents.get(agent_type)
        if agent is None:
            raise InvalidRequestError(f"No agent available for type: {agent_type}")
        return agent

    def _validate_message(self, message: Optional[str]) -> str:
        text = (message or "").strip()
        if not text:
            raise InvalidRequestError("Message is required")
        if len(text) > self.max_message_length:
            raise InvalidRequestError(f"Message too long (max {self.max_message_length} characters)")
        return text

    def _load_or_create(self, user_id: str, conversation_id: Optional[str]) -> Conversation:
        if conversation_id:
            conversation = self.store.load(conversation_id, user_id)
            if conversation is None:
                raise ConversationNotFoundError(conversation_id)
            return conversation
        conversation = Conversation(user_id=user_id)
        LOGGER.info(f"Created conversation {conversation.id} for user {user_id}")
        return conversation

    def _context_text(self, ui: ChatContext, conversation: Conversation) -> Optional[str]:
        lines = []
        location = AgentContext(user_id="", folder_id=ui.folder_id, file_id=ui.file_id, file_name=ui.file_name)
        described = location.describe()
        if described:
            lines.append(described)
        for msg in conversation.messages[-5:-1]:
            if msg.content:
                lines.append(f"{msg.role}: {msg.content[:200]}")
        return "\n".join(lines) or None

    # ------------------------------------------------------------------
    # Approvals
    # ------------------------------------------------------------------

    async def resolve_approval(self, user_id: str, approval_id: str, approved: bool) -> ApprovalResult:
        """Approve or reject a pending operation; an approved operation runs exactly once."""
        resolution = self.gateway.resolve_approval(approval_id, user_id, approved)

        if resolution.status == "not_found":
            return ApprovalResult(success=False, message="Approval request not found")
        if resolution.status == "expired":
            return ApprovalResult(success=False, message="Approval request has expired")
        if resolution.status == "already_resolved":
            return ApprovalResult(success=False, message="Approval request has already been resolved")

        request = resolution.request
        if resolution.status == "rejected":
            self.gateway.consume_approval(approval_id)
            self._record_outcome(request, f"The user rejected the operation {request.tool_name}. It was not executed.")
            await self._notify_resolution(request, {"status": "rejected"})
            return ApprovalResult(success=True, message="Operation rejected")

        try:
            result = await self.catalog.call_tool(request.tool_name, request.args)
            text = truncate_tool_result(result.text, self.max_tool_result_chars)
            is_error = result.is_error
        except Exception as e:
            LOGGER.error(f"Approved operation {request.tool_name} failed: {e}")
            text = f"Tool execution error: {e}"
            is_error = True
        finally:
            self.gateway.consume_approval(approval_id)

        call = ToolCall(tool_name=request.tool_name, args=request.args, result=text, is_error=is_error)
        if is_error:
            summary = f"The approved operation {request.tool_name} failed: {text}"
        else:
            summary = f"The approved operation {request.tool_name} was executed.\n{text}"
        self._record_outcome(request, summary, call)
        await self._notify_resolution(request, {"status": "approved", "success": not is_error})

        if is_error:
            return ApprovalResult(success=False, result=text, message="Operation failed")
        return ApprovalResult(success=True, result=text, message="Operation executed successfully")

    def _record_outcome(self, request: ApprovalRequest, content: str, call: Optional[ToolCall] = None) -> None:
        conversation = self.store.load(request.conversation_id, request.user_id)
        if conversation is None:
            LOGGER.warning(f"Conversation {request.conversation_id} for approval {request.id} no longer exists")
            return
        conversation.append(Message(role="assistant", content=content, tool_calls=[call] if call else None))
        self.store.save(conversation)

    async def _notify_resolution(self, request: ApprovalRequest, payload: Dict[str, Any]) -> None:
        await safe_notify(
            self.notifier,
            request.user_id,
            APPROVAL_RESOLVED,
            {
                "approval_id": request.id,
                "conversation_id": request.conversation_id,
                "tool_name": request.tool_name,
                **payload,
            },
        )

    def get_pending_approvals(self, user_id: str) -> List[ApprovalRequest]:
        return self.gateway.get_pending_approvals(user_id)

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def list_conversations(self, user_id: str) -> List[ConversationListItem]:
        return self.store.list_for_user(user_id)

    def get_conversation(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = self.store.load(conversation_id, user_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        """Soft delete: the conversation is hidden but kept in storage."""
        conversation = self.get_conversation(conversation_id, user_id)
        conversation.is_active = False
        self.store.save(conversation)
        LOGGER.info(f"Deleted conversation {conversation_id}")

    def get_status(self) -> ServiceStatus:
        return self.status
