"""Who may read which part of the audit trail."""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from chemflow.clock import Clock, to_naive_utc, utcnow
from chemflow.models.domain import AuditLogEntry, Principal
from chemflow.models.enums import EntityType, UserRole
from chemflow.services.audit import AuditRecorder
from chemflow.services.errors import ForbiddenError, UnauthenticatedError


@dataclass(frozen=True)
class StatusHistoryItem:
    id: int
    ticket_id: str
    previous_status: str
    new_status: str
    changed_by_id: str
    changed_by_name: str
    changed_by_role: str
    changed_at: datetime
    comments: str

    @classmethod
    def from_entry(cls, entry: AuditLogEntry) -> "StatusHistoryItem":
        previous_value = entry.previous_value or {}
        new_value = entry.new_value or {}
        return cls(
            id=entry.id,
            ticket_id=entry.entity_id,
            previous_status=previous_value.get("status", "") if isinstance(previous_value, dict) else "",
            new_status=new_value.get("status", "") if isinstance(new_value, dict) else "",
            changed_by_id=entry.user_id,
            changed_by_name=entry.user_name,
            changed_by_role=entry.user_role,
            changed_at=entry.timestamp,
            comments=entry.details,
        )


@dataclass(frozen=True)
class StatusHistoryPage:
    items: List[StatusHistoryItem]
    total: int
    page: int
    limit: int
    pages: int
    start_date: datetime
    end_date: datetime


class AuditQueryService:
    """
    Access control in front of the audit recorder's queries.

    - Any authenticated principal may read a ticket's status history
    - Only ADMIN may read a ticket's full log or system-wide activity
    - A principal may read their own activity; ADMIN may read anyone's
    """

    def __init__(self, recorder: AuditRecorder, clock: Clock = utcnow, default_window_days: int = 30):
        self.recorder = recorder
        self.clock = clock
        self.default_window_days = default_window_days

    def _require_principal(self, principal: Optional[Principal]) -> Principal:
        if principal is None or not principal.id:
            raise UnauthenticatedError("Unauthorized")
        return principal

    def get_ticket_status_history(
        self,
        principal: Optional[Principal],
        ticket_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20
    ) -> StatusHistoryPage:
        # TODO: restrict to principals who can see the ticket once list visibility rules are shared here
        self._require_principal(principal)
        page = page if page and page > 0 else 1
        limit = limit if limit and limit > 0 else 20
        end = to_naive_utc(end_date) or self.clock()
        start = to_naive_utc(start_date) or (end - timedelta(days=self.default_window_days))

        total, entries = self.recorder.status_history_in_range(
            ticket_id, start, end, limit=limit, offset=(page - 1) * limit
        )
        return StatusHistoryPage(
            items=[StatusHistoryItem.from_entry(e) for e in entries],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit),
            start_date=start,
            end_date=end,
        )

    def get_entity_audit_logs(
        self,
        principal: Optional[Principal],
        ticket_id: str,
        limit: int = 100,
        offset: int = 0
    ) -> List[AuditLogEntry]:
        principal = self._require_principal(principal)
        if principal.role != UserRole.ADMIN:
            raise ForbiddenError("Not authorized to view complete audit logs")
        return self.recorder.entity_logs(EntityType.TICKET, ticket_id, limit=limit, offset=offset)

    def get_recent_activity(
        self,
        principal: Optional[Principal],
        limit: int = 50,
        offset: int = 0
    ) -> List[AuditLogEntry]:
        principal = self._require_principal(principal)
        if principal.role != UserRole.ADMIN:
            raise ForbiddenError("Not authorized to view system activity")
        return self.recorder.recent_activity(limit=limit, offset=offset)

    def get_user_activity(
        self,
        principal: Optional[Principal],
        user_id: str,
        limit: int = 50,
        offset: int = 0
    ) -> List[AuditLogEntry]:
        principal = self._require_principal(principal)
        if principal.role != UserRole.ADMIN and principal.id != user_id:
            raise ForbiddenError("Not authorized to view other user activities")
        return self.recorder.user_activity(user_id, limit=limit, offset=offset)
