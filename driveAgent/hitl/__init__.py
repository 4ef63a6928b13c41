"""Human-in-the-loop approval for dangerous operations."""

from .approval_store import ApprovalStore
from .gateway import CapabilityGateway, load_policy
from .schema import (
    ApprovalRequest,
    ApprovalResolution,
    GatewayDecision,
    PendingApproval,
    PolicyDecision,
)

__all__ = [
    "ApprovalStore",
    "CapabilityGateway",
    "load_policy",
    "ApprovalRequest",
    "ApprovalResolution",
    "GatewayDecision",
    "PendingApproval",
    "PolicyDecision",
]
