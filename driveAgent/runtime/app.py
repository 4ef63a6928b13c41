"""Runtime assembly for the drive assistant core."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from langchain_core.messages import HumanMessage

from driveAgent.agents.base_agent import BaseAgent
from driveAgent.agents.document_agent import DocumentAgent
from driveAgent.agents.drive_agent import DriveAgent
from driveAgent.agents.factory import invoke_classifier
from driveAgent.agents.router import AgentRouter
from driveAgent.agents.search_agent import SearchAgent
from driveAgent.config import Settings, get_settings, resolve_project_path
from driveAgent.config.patterns import load_pattern_config
from driveAgent.context.memory_manager import MemoryManager
from driveAgent.hitl.approval_store import ApprovalStore
from driveAgent.hitl.gateway import CapabilityGateway
from driveAgent.models import ModelRegistry, build_default_registry
from driveAgent.notifications import Notifier
from driveAgent.persistence.conversation_store import ConversationStore
from driveAgent.planning.orchestrator import TaskOrchestrator
from driveAgent.planning.planner import TaskPlanner
from driveAgent.planning.tracker import TaskPlanTracker
from driveAgent.tools.catalog import ToolCatalog
from driveAgent.tools.client import ToolClient
from driveAgent.tools.mcp import MCPServerManager, MCPToolClient, load_mcp_config

from .model_resolver import ModelResolver, build_model_resolver, resolve_model_configs
from .service import AgentService, ServiceStatus

LOGGER = logging.getLogger(__name__)


@dataclass
class Application:
    """Wired service plus the resources that need closing."""

    service: AgentService
    catalog: ToolCatalog
    tool_client: ToolClient

    async def close(self) -> None:
        close = getattr(self.tool_client, "close", None)
        if close is not None:
            await close()


def _build_tool_client(settings: Settings) -> ToolClient:
    config = load_mcp_config(resolve_project_path(settings.paths.mcp_servers))
    manager = MCPServerManager(config)
    LOGGER.info(f"MCP servers configured: {manager.list_configured_servers()}")
    return MCPToolClient(manager)


def _build_summarizer(model_registry: ModelRegistry, model_resolver: ModelResolver):
    async def summarize(prompt: str) -> str:
        return await invoke_classifier(
            model_registry=model_registry,
            model_resolver=model_resolver,
            messages=[HumanMessage(content=prompt)],
            phase="summarize",
        )

    return summarize


def build_application(
    settings: Optional[Settings] = None,
    *,
    model_resolver: Optional[ModelResolver] = None,
    tool_client: Optional[ToolClient] = None,
    notifier: Optional[Notifier] = None,
    store: Optional[ConversationStore] = None,
) -> Application:
    """Return a fully wired ``Application``.

    Every collaborator can be replaced, which is how tests inject fake models
    and tool clients.
    """
    settings = settings or get_settings()
    governance = settings.governance

    model_configs = resolve_model_configs(settings)
    model_registry = build_default_registry(model_configs)
    resolver = model_resolver or build_model_resolver(model_configs)

    client = tool_client or _build_tool_client(settings)
    catalog = ToolCatalog(client)

    gateway = CapabilityGateway.from_config(
        resolve_project_path(settings.paths.capability_policy),
        ApprovalStore(ttl_seconds=governance.approval_ttl_seconds),
    )
    memory = MemoryManager.from_settings(settings.memory, _build_summarizer(model_registry, resolver))

    agent_kwargs = dict(
        catalog=catalog,
        gateway=gateway,
        memory=memory,
        model_registry=model_registry,
        model_resolver=resolver,
        max_iterations=governance.max_tool_iterations,
        max_tool_result_chars=governance.max_tool_result_chars,
    )
    agents: Dict[str, BaseAgent] = {
        "drive": DriveAgent(**agent_kwargs),
        "document": DocumentAgent(**agent_kwargs),
        "search": SearchAgent(**agent_kwargs),
    }

    patterns = load_pattern_config(resolve_project_path(settings.paths.routing_patterns))
    router = AgentRouter(
        patterns,
        model_registry,
        resolver,
        confidence_threshold=governance.pattern_confidence_threshold,
    )
    planner = TaskPlanner(
        patterns,
        model_registry,
        resolver,
        complexity_threshold=governance.task_complexity_threshold,
        max_steps=governance.max_plan_steps,
    )
    tracker = TaskPlanTracker()
    orchestrator = TaskOrchestrator(agents, tracker)

    status = ServiceStatus(
        enabled=bool(settings.models.chat_api_key),
        model=settings.models.chat,
        provider=settings.models.provider,
    )
    service = AgentService(
        store=store or ConversationStore(str(resolve_project_path(settings.observability.conversation_db_path))),
        router=router,
        planner=planner,
        orchestrator=orchestrator,
        agents=agents,
        gateway=gateway,
        catalog=catalog,
        notifier=notifier,
        tracker=tracker,
        max_message_length=governance.max_message_length,
        max_tool_result_chars=governance.max_tool_result_chars,
        status=status,
    )
    LOGGER.info(f"Agent service ready (model={settings.models.chat}, enabled={status.enabled})")
    return Application(service=service, catalog=catalog, tool_client=client)
