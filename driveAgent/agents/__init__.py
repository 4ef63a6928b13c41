"""Agent router, base agent and the specialized agents."""

from .schema import AGENT_TYPES, AgentContext, AgentType, RouteDecision

__all__ = ["AGENT_TYPES", "AgentContext", "AgentType", "RouteDecision"]
