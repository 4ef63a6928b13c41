"""Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and ensures proper test environment setup.
Fixtures wire the real components around the fakes in ``tests/fakes.py``, so no
test needs network access or API keys.
"""

import sys
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

# Ensure project root is in PYTHONPATH for imports to work
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from driveAgent.agents.document_agent import DocumentAgent  # noqa: E402
from driveAgent.agents.drive_agent import DriveAgent  # noqa: E402
from driveAgent.agents.router import AgentRouter  # noqa: E402
from driveAgent.agents.search_agent import SearchAgent  # noqa: E402
from driveAgent.config.patterns import load_pattern_config  # noqa: E402
from driveAgent.context.memory_manager import MemoryManager  # noqa: E402
from driveAgent.hitl.approval_store import ApprovalStore  # noqa: E402
from driveAgent.hitl.gateway import CapabilityGateway  # noqa: E402
from driveAgent.models import ModelRegistry, ModelSpec  # noqa: E402
from driveAgent.persistence.conversation_store import ConversationStore  # noqa: E402
from driveAgent.planning.orchestrator import TaskOrchestrator  # noqa: E402
from driveAgent.planning.planner import TaskPlanner  # noqa: E402
from driveAgent.runtime.service import AgentService  # noqa: E402
from driveAgent.tools.catalog import ToolCatalog  # noqa: E402
from tests.fakes import (  # noqa: E402
    BASE_MODEL_ID,
    CHAT_MODEL_ID,
    FakeChatModel,
    FakeResolver,
    FakeToolClient,
    RecordingNotifier,
)

CONFIG_DIR = project_root / "driveAgent" / "config"


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------


@pytest.fixture
def model_registry() -> ModelRegistry:
    return ModelRegistry(
        [
            ModelSpec(key="base", model_id=BASE_MODEL_ID, can_tools=False, context_window=128000),
            ModelSpec(key="chat", model_id=CHAT_MODEL_ID, can_tools=True, context_window=128000),
        ]
    )


@pytest.fixture
def base_model() -> FakeChatModel:
    """Tool-free model used by the router, complexity classifier, planner and summarizer."""
    return FakeChatModel()


@pytest.fixture
def chat_model() -> FakeChatModel:
    """Tool-calling model used by the agents."""
    return FakeChatModel()


@pytest.fixture
def model_resolver(base_model, chat_model) -> FakeResolver:
    return FakeResolver({BASE_MODEL_ID: base_model, CHAT_MODEL_ID: chat_model})


@pytest.fixture
def tool_client() -> FakeToolClient:
    return FakeToolClient()


@pytest.fixture
def catalog(tool_client) -> ToolCatalog:
    return ToolCatalog(tool_client)


@pytest.fixture
def approval_store() -> ApprovalStore:
    return ApprovalStore(ttl_seconds=1800)


@pytest.fixture
def gateway(approval_store) -> CapabilityGateway:
    return CapabilityGateway.from_config(CONFIG_DIR / "capability_policy.yaml", approval_store)


@pytest.fixture
def patterns():
    return load_pattern_config(CONFIG_DIR / "routing_patterns.yaml")


@pytest.fixture
def memory() -> MemoryManager:
    return MemoryManager()


@pytest.fixture
def store(tmp_path) -> ConversationStore:
    return ConversationStore(str(tmp_path / "conversations.db"))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def agent_factory(catalog, gateway, memory, model_registry, model_resolver) -> Callable[..., Any]:
    def build(agent_cls=DriveAgent, **overrides):
        kwargs = dict(
            catalog=catalog,
            gateway=gateway,
            memory=memory,
            model_registry=model_registry,
            model_resolver=model_resolver,
            max_iterations=10,
            max_tool_result_chars=20_000,
        )
        kwargs.update(overrides)
        return agent_cls(**kwargs)

    return build


@pytest.fixture
def agents(agent_factory) -> Dict[str, Any]:
    return {
        "drive": agent_factory(DriveAgent),
        "document": agent_factory(DocumentAgent),
        "search": agent_factory(SearchAgent),
    }


@pytest.fixture
def router(patterns, model_registry, model_resolver) -> AgentRouter:
    return AgentRouter(patterns, model_registry, model_resolver, confidence_threshold=0.3)


@pytest.fixture
def planner(patterns, model_registry, model_resolver) -> TaskPlanner:
    return TaskPlanner(patterns, model_registry, model_resolver, complexity_threshold=1, max_steps=8)


@pytest.fixture
def orchestrator(agents) -> TaskOrchestrator:
    return TaskOrchestrator(agents)


@pytest.fixture
def service(store, router, planner, orchestrator, agents, gateway, catalog, notifier) -> AgentService:
    return AgentService(
        store=store,
        router=router,
        planner=planner,
        orchestrator=orchestrator,
        agents=agents,
        gateway=gateway,
        catalog=catalog,
        notifier=notifier,
    )
