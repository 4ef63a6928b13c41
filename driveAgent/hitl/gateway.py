"""Capability gateway: per-operation allow / block / require-approval decisions."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from .approval_store import ApprovalStore
from .schema import ApprovalRequest, ApprovalResolution, GatewayDecision, PolicyDecision

LOGGER = logging.getLogger(__name__)

RISK_LEVELS_ORDER = ["critical", "high", "medium", "low"]


def load_policy(config_path: Optional[Path]) -> dict:
    """Load the capability policy YAML; a missing file yields an empty policy."""
    if not config_path or not config_path.exists():
        LOGGER.warning(f"Capability policy not found at {config_path}, allowing all operations")
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


class CapabilityGateway:
    """Policy engine consulted before every tool execution.

    Four layers, checked in order:
    1. Custom checkers registered in code (highest priority)
    2. Per-agent-type blocked operations
    3. Global argument risk patterns (cross-tool)
    4. Per-tool policy, then the default action
    """

    def __init__(self, policy: Optional[dict] = None, store: Optional[ApprovalStore] = None):
        self.policy = policy or {}
        self.store = store or ApprovalStore()
        self.default_action = self.policy.get("default_action", "allow")
        self.custom_checkers: Dict[str, Callable[[str, dict], Optional[PolicyDecision]]] = {}
        self.global_patterns = self._load_global_patterns()

    @classmethod
    def from_config(cls, config_path: Optional[Path], store: Optional[ApprovalStore] = None) -> "CapabilityGateway":
        return cls(load_policy(config_path), store)

    def _load_global_patterns(self) -> Dict[str, Dict[str, Any]]:
        risk_patterns = self.policy.get("global", {}).get("risk_patterns", {})

        patterns_by_level = {}
        for level, pattern_config in risk_patterns.items():
            if isinstance(pattern_config, dict):
                patterns_by_level[level] = {
                    "patterns": [re.compile(p, re.IGNORECASE) for p in pattern_config.get("patterns", [])],
                    "action": pattern_config.get("action", "require_approval"),
                    "reason": pattern_config.get("reason", f"Matched {level} risk pattern"),
                }
        return patterns_by_level

    def register_checker(self, tool_name: str, checker: Callable[[str, dict], Optional[PolicyDecision]]):
        """Register a code-level checker for one tool.

        Args:
            tool_name: Operation name
            checker: Called with (agent_type, args); returning None falls through to the YAML layers
        """
        self.custom_checkers[tool_name] = checker

    def classify(self, agent_type: str, tool_name: str, args: Dict[str, Any]) -> PolicyDecision:
        """Classify an operation without side effects."""
        if tool_name in self.custom_checkers:
            decision = self.custom_checkers[tool_name](agent_type, args)
            if decision is not None:
                return decision

        agent_policy = self.policy.get("agents", {}).get(agent_type, {})
        if tool_name in agent_policy.get("blocked", []):
            reason = agent_policy.get("reason", f"Operation not permitted for the {agent_type} agent")
            return PolicyDecision(action="block", reason=f"{tool_name}: {reason}", risk_level="high")

        global_decision = self._check_global_patterns(args)
        if global_decision.action != "allow":
            return global_decision

        tool_policy = self.policy.get("tools", {}).get(tool_name)
        if tool_policy:
            action = tool_policy.get("action", self.default_action)
            return PolicyDecision(
                action=action,
                reason=tool_policy.get("reason", f"{tool_name} is a sensitive operation"),
                risk_level=tool_policy.get("risk_level", "low"),
            )

        return PolicyDecision(action=self.default_action)

    def _check_global_patterns(self, args: Dict[str, Any]) -> PolicyDecision:
        if not self.global_patterns:
            return PolicyDecision(action="allow")

        args_str = " ".join(str(v) for v in args.values())

        for risk_level in RISK_LEVELS_ORDER:
            pattern_config = self.global_patterns.get(risk_level)
            if not pattern_config:
                continue
            for pattern in pattern_config["patterns"]:
                if pattern.search(args_str):
                    return PolicyDecision(
                        action=pattern_config["action"],
                        reason=pattern_config["reason"],
                        risk_level=risk_level,
                    )

        return PolicyDecision(action="allow")

    def check_tool_permission(
        self,
        agent_type: str,
        tool_name: str,
        user_id: str,
        conversation_id: str,
        args: Dict[str, Any],
    ) -> GatewayDecision:
        """Decide on one requested operation; registers an approval when needed."""
        decision = self.classify(agent_type, tool_name, args)

        if decision.action == "block":
            LOGGER.warning(f"Blocked {tool_name} for {agent_type} agent: {decision.reason}")
            return GatewayDecision(allowed=False, reason=decision.reason, risk_level=decision.risk_level)

        if decision.action == "require_approval":
            request = self.store.add(
                ApprovalRequest(
                    user_id=user_id,
                    conversation_id=conversation_id,
                    agent_type=agent_type,
                    tool_name=tool_name,
                    args=dict(args),
                    reason=decision.reason,
                    risk_level=decision.risk_level,
                )
            )
            return GatewayDecision(
                allowed=False,
                requires_approval=True,
                approval_id=request.id,
                reason=decision.reason,
                risk_level=decision.risk_level,
            )

        return GatewayDecision(allowed=True, risk_level=decision.risk_level)

    def resolve_approval(self, approval_id: str, user_id: str, approved: bool) -> ApprovalResolution:
        """Mark a request approved or rejected. Does not execute anything."""
        return self.store.resolve(approval_id, user_id, approved)

    def consume_approval(self, approval_id: str) -> bool:
        return self.store.consume(approval_id)

    def get_pending_approvals(self, user_id: str) -> List[ApprovalRequest]:
        return self.store.pending_for_user(user_id)
