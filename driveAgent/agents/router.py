"""Agent routing: explicit hint, textual patterns, stickiness, then a model classifier."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from langchain_core.messages import HumanMessage, SystemMessage

from driveAgent.agents.factory import extract_json_object, invoke_classifier
from driveAgent.agents.prompts import ROUTER_PROMPT
from driveAgent.agents.schema import DEFAULT_AGENT_TYPE, RouteDecision, is_agent_type
from driveAgent.config.patterns import PatternConfig, count_matches
from driveAgent.models import ModelRegistry
from driveAgent.runtime.model_resolver import ModelResolver
from driveAgent.utils.logging_utils import log_routing_decision

LOGGER = logging.getLogger(__name__)

STICKY_CONFIDENCE = 0.9
DEFAULT_CONFIDENCE = 0.2
PATTERN_FALLBACK_CONFIDENCE = 0.3


def pattern_confidence(top: int, second: int) -> float:
    """Margin-based confidence of the best pattern score."""
    if top == 0:
        return 0.0
    if second == 0:
        return min(top / 3, 1.0)
    return (top - second) / (top + second)


class AgentRouter:
    """Chooses the agent type that owns a turn.

    Priority:
    1. Explicit hint from the caller
    2. Pattern scores when confident enough (overrides stickiness)
    3. Sticky type of the conversation
    4. Model classifier, degrading to the best pattern score or the default type
    """

    def __init__(
        self,
        patterns: PatternConfig,
        model_registry: ModelRegistry,
        model_resolver: ModelResolver,
        confidence_threshold: float = 0.3,
    ):
        self.patterns = patterns
        self.model_registry = model_registry
        self.model_resolver = model_resolver
        self.confidence_threshold = confidence_threshold

    def score(self, message: str) -> List[Tuple[str, int]]:
        """Pattern scores per agent type, best first (stable for ties)."""
        scores = [
            (agent_type, count_matches(self.patterns.routing.get(agent_type, []), message))
            for agent_type in self.patterns.routing
            if is_agent_type(agent_type)
        ]
        return sorted(scores, key=lambda item: item[1], reverse=True)

    def match_patterns(self, message: str) -> Tuple[Optional[str], int, float]:
        """Return (best type or None, its score, confidence)."""
        scores = self.score(message)
        if not scores or scores[0][1] == 0:
            return None, 0, 0.0
        top_type, top = scores[0]
        second = scores[1][1] if len(scores) > 1 else 0
        return top_type, top, pattern_confidence(top, second)

    async def route(
        self,
        message: str,
        explicit_type: Optional[str] = None,
        sticky_type: Optional[str] = None,
        context_text: Optional[str] = None,
    ) -> RouteDecision:
        """Decide which agent handles ``message``. Never raises."""
        decision = await self._route(message, explicit_type, sticky_type, context_text)
        log_routing_decision(LOGGER, decision.agent_type, decision.source, decision.confidence, decision.reason)
        return decision

    async def _route(
        self,
        message: str,
        explicit_type: Optional[str],
        sticky_type: Optional[str],
        context_text: Optional[str],
    ) -> RouteDecision:
        if explicit_type:
            if is_agent_type(explicit_type):
                return RouteDecision(
                    agent_type=explicit_type,
                    confidence=1.0,
                    source="explicit",
                    reason="Explicit context from frontend",
                )
            LOGGER.warning(f"Ignoring unknown explicit agent type: {explicit_type}")

        best_type, top, confidence = self.match_patterns(message)
        LOGGER.debug(f"Pattern match: type={best_type}, score={top}, confidence={confidence:.2f}")
        if best_type is not None and confidence >= self.confidence_threshold:
            return RouteDecision(
                agent_type=best_type,
                confidence=confidence,
                source="pattern",
                reason=f"Pattern matching (score: {top}, confidence: {confidence:.2f})",
            )

        if sticky_type and is_agent_type(sticky_type):
            return RouteDecision(
                agent_type=sticky_type,
                confidence=STICKY_CONFIDENCE,
                source="conversation",
                reason="Continuing existing conversation",
            )

        llm_decision = await self.classify_with_llm(message, context_text)
        if llm_decision is not None:
            return llm_decision

        if best_type is not None:
            return RouteDecision(
                agent_type=best_type,
                confidence=confidence or PATTERN_FALLBACK_CONFIDENCE,
                source="pattern",
                reason="Low-confidence pattern fallback (LLM Router unavailable)",
            )

        return RouteDecision(
            agent_type=DEFAULT_AGENT_TYPE,
            confidence=DEFAULT_CONFIDENCE,
            source="default",
            reason="Default routing (no pattern match, LLM Router unavailable)",
        )

    async def classify_with_llm(self, message: str, context_text: Optional[str] = None) -> Optional[RouteDecision]:
        """Ask the base model for a route; None on any failure or out-of-set answer."""
        messages = [SystemMessage(content=ROUTER_PROMPT)]
        if context_text:
            messages.append(SystemMessage(content=f"Recent conversation context:\n{context_text}"))
        messages.append(HumanMessage(content=f'Classify this user request:\n"{message}"'))

        try:
            text = await invoke_classifier(
                model_registry=self.model_registry,
                model_resolver=self.model_resolver,
                messages=messages,
                phase="route",
            )
        except Exception as e:
            LOGGER.warning(f"LLM router unavailable, falling back: {e}")
            return None

        parsed = extract_json_object(text)
        if parsed is None:
            LOGGER.warning(f"LLM router returned no JSON: {text[:200]}")
            return None

        agent_type = parsed.get("route_to")
        if not is_agent_type(agent_type):
            LOGGER.warning(f"LLM router returned unknown agent type: {agent_type!r}")
            return None

        try:
            confidence = float(parsed.get("confidence") or 0.5)
        except (TypeError, ValueError):
            confidence = 0.5

        return RouteDecision(
            agent_type=agent_type,
            confidence=min(max(confidence, 0.0), 1.0),
            source="llm",
            reason=str(parsed.get("reason") or "LLM classification"),
        )
