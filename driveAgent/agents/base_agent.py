"""Shared tool-calling loop of the specialized agents."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage

from driveAgent.agents.factory import content_text, get_model, invoke_model
from driveAgent.agents.schema import AgentContext
from driveAgent.context.memory_manager import MemoryManager
from driveAgent.hitl.gateway import CapabilityGateway
from driveAgent.hitl.schema import PendingApproval
from driveAgent.models import ModelRegistry
from driveAgent.persistence.schema import Message, Summary, ToolCall
from driveAgent.planning.schema import TaskPlan
from driveAgent.runtime.model_resolver import ModelResolver
from driveAgent.tools.catalog import ToolCatalog
from driveAgent.tools.client import IDENTITY_ARGUMENT, ToolDefinition
from driveAgent.tools.validation import validate_tool_arguments
from driveAgent.utils.logging_utils import log_tool_call, log_tool_result, log_visible_tools

LOGGER = logging.getLogger(__name__)

EMPTY_RESPONSE = "Done."
ITERATION_LIMIT_MESSAGE = (
    "I've reached the maximum number of operations in a single turn. "
    "Please continue with additional instructions."
)
APPROVAL_REQUIRED_TEMPLATE = (
    "[APPROVAL REQUIRED] This operation requires user approval: {reason}. "
    "The user has been notified and needs to approve before this action can proceed."
)


def truncate_tool_result(text: str, max_chars: int) -> str:
    """Cap a tool result, marking how much was kept."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + f"\n\n[Truncated: {max_chars} of {len(text)} chars]"


@dataclass
class AgentRunResult:
    """Everything one agent run produced."""

    content: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    pending_approvals: List[PendingApproval] = field(default_factory=list)
    updated_summaries: List[Summary] = field(default_factory=list)
    updated_plan: Optional[TaskPlan] = None


class BaseAgent(ABC):
    """Runs the bounded model/tool loop for one agent type.

    Subclasses provide the system prompt, the operation allow-list and optional
    context enrichment. Every requested operation passes the allow-list, argument
    validation and the capability gateway before it reaches the tool catalog.
    """

    agent_type: str = ""

    def __init__(
        self,
        *,
        catalog: ToolCatalog,
        gateway: CapabilityGateway,
        memory: MemoryManager,
        model_registry: ModelRegistry,
        model_resolver: ModelResolver,
        max_iterations: int = 10,
        max_tool_result_chars: int = 20_000,
    ):
        self.catalog = catalog
        self.gateway = gateway
        self.memory = memory
        self.model_registry = model_registry
        self.model_resolver = model_resolver
        self.max_iterations = max_iterations
        self.max_tool_result_chars = max_tool_result_chars

    @abstractmethod
    def get_system_prompt(self, context: AgentContext) -> str:
        ...

    @abstractmethod
    def get_allowed_tools(self) -> FrozenSet[str]:
        ...

    async def enrich_context(self, context: AgentContext) -> AgentContext:
        """Add agent-specific notes to the context. Failures must not abort the run."""
        return context

    async def lookup(self, tool_name: str, args: Dict[str, Any], context: AgentContext) -> Optional[str]:
        """Read-only helper call used during enrichment; None if unavailable or failed."""
        try:
            if await self.catalog.get(tool_name) is None:
                return None
            result = await self.catalog.call_tool(tool_name, {**args, IDENTITY_ARGUMENT: context.user_id})
        except Exception as e:
            LOGGER.warning(f"[{self.agent_type}] Context lookup {tool_name} failed: {e}")
            return None
        if result.is_error:
            LOGGER.warning(f"[{self.agent_type}] Context lookup {tool_name} returned an error: {result.text[:200]}")
            return None
        return result.text

    async def run(
        self,
        context: AgentContext,
        history: List[Message],
        conversation_id: str,
        summaries: Optional[List[Summary]] = None,
        active_plan: Optional[TaskPlan] = None,
        extra_messages: Optional[List[BaseMessage]] = None,
    ) -> AgentRunResult:
        """Run one turn for this agent.

        Args:
            context: Caller context; copied before enrichment
            history: Persisted conversation messages, never mutated
            conversation_id: Used to attribute approval requests
            summaries: Existing summaries of older history
            active_plan: Incomplete plan to frame the turn with
            extra_messages: Appended after the assembled history (step instructions)

        Raises:
            BackendUnavailableError: If no model is configured
            ModelInvocationError: If the model call fails
        """
        model = get_model(
            model_registry=self.model_registry,
            model_resolver=self.model_resolver,
            phase="agent",
            require_tools=True,
        )

        context = await self.enrich_context(context.model_copy(deep=True))
        state = await self.memory.build_memory_state(history, summaries or [], active_plan)
        messages = self.memory.assemble_llm_messages(self.get_system_prompt(context), state)
        if extra_messages:
            messages.extend(extra_messages)

        allowed = self.get_allowed_tools()
        definitions = {t.name: t for t in await self.catalog.list_tools() if t.name in allowed}
        log_visible_tools(LOGGER, self.agent_type, definitions.keys())
        runnable = model.bind_tools([t.to_openai_tool() for t in definitions.values()]) if definitions else model

        executed: List[ToolCall] = []
        pending: List[PendingApproval] = []

        for iteration in range(1, self.max_iterations + 1):
            self.memory.compress_if_needed(messages)
            response = await invoke_model(runnable, messages, phase="agent")

            requested = list(getattr(response, "tool_calls", None) or [])
            malformed = list(getattr(response, "invalid_tool_calls", None) or [])
            if not requested and not malformed:
                content = content_text(response.content).strip()
                LOGGER.info(f"[{self.agent_type}] Finished after {iteration} model call(s), {len(executed)} tool call(s)")
                return self._result(content or EMPTY_RESPONSE, executed, pending, state.summaries, active_plan)

            messages.append(response if isinstance(response, AIMessage) else AIMessage(content=str(response.content)))

            for call in malformed:
                text = f"[INVALID ARGUMENTS] Could not parse arguments: {call.get('error') or 'malformed JSON'}"
                name = call.get("name") or "unknown"
                executed.append(ToolCall(tool_name=name, args={}, result=text, is_error=True))
                messages.append(ToolMessage(content=text, tool_call_id=call.get("id") or "", name=name))

            for call in requested:
                name = call["name"]
                args = dict(call.get("args") or {})
                text, is_error, approval = await self._execute_tool_call(
                    name, args, definitions, context, conversation_id
                )
                text = truncate_tool_result(text, self.max_tool_result_chars)
                if approval is not None:
                    pending.append(approval)
                executed.append(ToolCall(tool_name=name, args=args, result=text, is_error=is_error))
                messages.append(ToolMessage(content=text, tool_call_id=call.get("id") or "", name=name))

        LOGGER.warning(f"[{self.agent_type}] Iteration limit reached ({self.max_iterations})")
        return self._result(ITERATION_LIMIT_MESSAGE, executed, pending, state.summaries, active_plan)

    async def _execute_tool_call(
        self,
        name: str,
        args: Dict[str, Any],
        definitions: Dict[str, ToolDefinition],
        context: AgentContext,
        conversation_id: str,
    ) -> Tuple[str, bool, Optional[PendingApproval]]:
        """Run one requested operation through allow-list, validation and gateway.

        ``args`` is updated in place with the caller identity once validated.
        """
        definition = definitions.get(name)
        if definition is None:
            LOGGER.warning(f"[{self.agent_type}] Model requested unavailable tool {name}")
            return f"[BLOCKED] Operation {name} is not available to the {self.agent_type} agent.", True, None

        problem = validate_tool_arguments(definition.model_schema(), args)
        if problem is not None:
            LOGGER.info(f"[{self.agent_type}] Invalid arguments for {name}: {problem}")
            return f"[INVALID ARGUMENTS] {problem}", True, None

        args[IDENTITY_ARGUMENT] = context.user_id

        decision = self.gateway.check_tool_permission(
            agent_type=self.agent_type,
            tool_name=name,
            user_id=context.user_id,
            conversation_id=conversation_id,
            args=args,
        )
        if decision.requires_approval:
            reason = decision.reason or "Sensitive operation"
            approval = PendingApproval(
                approval_id=decision.approval_id or "",
                tool_name=name,
                args=dict(args),
                reason=reason,
            )
            return APPROVAL_REQUIRED_TEMPLATE.format(reason=reason), False, approval
        if not decision.allowed:
            return f"[BLOCKED] {decision.reason or 'Operation not permitted'}", True, None

        log_tool_call(LOGGER, name, args)
        try:
            result = await self.catalog.call_tool(name, args)
        except Exception as e:
            LOGGER.error(f"[{self.agent_type}] Tool {name} raised: {e}")
            log_tool_result(LOGGER, name, str(e), success=False)
            return f"Tool execution error: {e}", True, None

        log_tool_result(LOGGER, name, result.text, success=not result.is_error)
        return result.text, result.is_error, None

    def _result(
        self,
        content: str,
        executed: List[ToolCall],
        pending: List[PendingApproval],
        summaries: List[Summary],
        active_plan: Optional[TaskPlan],
    ) -> AgentRunResult:
        return AgentRunResult(
            content=content,
            tool_calls=executed,
            pending_approvals=pending,
            updated_summaries=list(summaries),
            updated_plan=active_plan,
        )
