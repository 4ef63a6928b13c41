"""In-process registry of pending approval requests."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from driveAgent.persistence.schema import utcnow

from .schema import ApprovalRequest, ApprovalResolution

LOGGER = logging.getLogger(__name__)


class ApprovalStore:
    """Holds approval requests from creation until they are consumed.

    Expiry is lazy: a pending request older than ``ttl_seconds`` is treated as
    expired from then on. Listing skips it; resolving reports ``expired`` and removes it.
    All state transitions happen under one lock, so a request moves out of
    ``pending`` at most once.
    """

    def __init__(self, ttl_seconds: int = 1800, clock: Optional[Callable[[], datetime]] = None):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or utcnow
        self._requests: Dict[str, ApprovalRequest] = {}
        self._lock = threading.Lock()

    def add(self, request: ApprovalRequest) -> ApprovalRequest:
        with self._lock:
            self._requests[request.id] = request
        LOGGER.info(f"Approval requested: {request.id} ({request.tool_name}) for user {request.user_id}")
        return request

    def get(self, approval_id: str) -> Optional[ApprovalRequest]:
        with self._lock:
            return self._requests.get(approval_id)

    def _is_expired(self, request: ApprovalRequest, now: datetime) -> bool:
        return request.status == "pending" and now - request.created_at > self.ttl

    def resolve(self, approval_id: str, user_id: str, approved: bool) -> ApprovalResolution:
        """Transition a pending, owner-matching request to approved or rejected.

        Returns:
            ApprovalResolution with status ``not_found`` (unknown id or other owner),
            ``expired`` (request removed), ``already_resolved``, ``approved`` or ``rejected``
        """
        now = self._clock()
        with self._lock:
            request = self._requests.get(approval_id)
            if request is None or request.user_id != user_id:
                return ApprovalResolution(status="not_found")

            if self._is_expired(request, now):
                request.status = "expired"
                request.resolved_at = now
                del self._requests[approval_id]
                LOGGER.info(f"Approval {approval_id} expired before resolution")
                return ApprovalResolution(status="expired", request=request)

            if request.status != "pending":
                return ApprovalResolution(status="already_resolved", request=request)

            request.status = "approved" if approved else "rejected"
            request.resolved_at = now

        LOGGER.info(f"Approval {approval_id} {request.status} by user {user_id}")
        return ApprovalResolution(status=request.status, request=request)

    def consume(self, approval_id: str) -> bool:
        """Remove a resolved request. Pending requests are left in place."""
        with self._lock:
            request = self._requests.get(approval_id)
            if request is None or request.status == "pending":
                return False
            del self._requests[approval_id]
        LOGGER.debug(f"Approval {approval_id} consumed")
        return True

    def pending_for_user(self, user_id: str) -> List[ApprovalRequest]:
        """List the user's unexpired pending requests, oldest first.

        Expired requests are skipped but kept, so resolving one still reports
        ``expired``. They are dropped once they are older than twice the TTL.
        """
        now = self._clock()
        with self._lock:
            for approval_id, request in list(self._requests.items()):
                if request.status == "pending" and now - request.created_at > 2 * self.ttl:
                    del self._requests[approval_id]
                    LOGGER.debug(f"Approval {approval_id} dropped after expiry")
            pending = [
                r
                for r in self._requests.values()
                if r.user_id == user_id and r.status == "pending" and not self._is_expired(r, now)
            ]
        return sorted(pending, key=lambda r: r.created_at)
