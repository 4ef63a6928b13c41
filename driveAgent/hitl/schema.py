"""Approval records and gateway decisions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from driveAgent.persistence.schema import utcnow

ApprovalStatus = Literal["pending", "approved", "rejected", "expired"]
ResolutionStatus = Literal["approved", "rejected", "expired", "not_found", "already_resolved"]
PolicyAction = Literal["allow", "block", "require_approval"]


@dataclass
class PolicyDecision:
    """Outcome of classifying one operation against the static policy."""

    action: PolicyAction
    reason: str = ""
    risk_level: str = "low"  # low, medium, high, critical


@dataclass
class GatewayDecision:
    """What the agent loop should do with one requested operation."""

    allowed: bool
    requires_approval: bool = False
    approval_id: Optional[str] = None
    reason: Optional[str] = None
    risk_level: str = "low"


class ApprovalRequest(BaseModel):
    """A deferred, consent-gated operation. Consumed exactly once."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    conversation_id: str
    agent_type: str
    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    reason: str
    risk_level: str = "high"
    status: ApprovalStatus = "pending"
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None


@dataclass
class ApprovalResolution:
    """Result of resolving an approval; ``request`` is set unless not found."""

    status: ResolutionStatus
    request: Optional[ApprovalRequest] = None


class PendingApproval(BaseModel):
    """Approval surfaced to the caller at the end of a turn."""

    approval_id: str
    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    reason: str
