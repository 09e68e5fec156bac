"""
Audit recorder.

Builds and persists immutable audit entries and answers history queries.
Auditing is observability, not part of the business transaction: nothing
in this module raises to its caller. Failures become None, [] or 0 and are
logged with enough structure to be picked up by log-based alerting.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from chemflow.clock import Clock, utcnow
from chemflow.models.domain import AuditEntryInput, AuditLogEntry
from chemflow.models.enums import AuditAction, EntityType
from chemflow.services.errors import AuditWriteFailure
from chemflow.services.repository import AuditLogRepository
from chemflow.services.sanitize import sanitize_snapshot

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("action", "entity_type", "entity_id", "user_id")


class AuditRecorder:
    """Write-once audit trail with read-only history queries."""

    def __init__(
        self,
        repository: AuditLogRepository,
        clock: Clock = utcnow,
        redact_nested: bool = False
    ):
        self.repository = repository
        self.clock = clock
        self.redact_nested = redact_nested

    def record(self, entry: Optional[AuditEntryInput]) -> Optional[AuditLogEntry]:
        """
        Persist one audit entry.

        Returns None instead of raising when the entry is incomplete, names
        an unknown action or entity type, or cannot be stored. Any timestamp
        on the input is ignored; entries are stamped with the recorder clock.
        """
        if entry is None:
            logger.warning("Missing required fields for audit logging", extra={"component": "audit"})
            return None

        missing = [name for name in _REQUIRED_FIELDS if not getattr(entry, name)]
        if missing:
            logger.warning(
                "Missing required fields for audit logging: %s", ", ".join(missing),
                extra={"component": "audit", "entity_id": entry.entity_id},
            )
            return None

        try:
            action = AuditAction(entry.action)
        except ValueError:
            logger.warning("Invalid audit action: %s", entry.action, extra={"component": "audit"})
            return None
        try:
            entity_type = EntityType(entry.entity_type)
        except ValueError:
            logger.warning("Invalid entity type: %s", entry.entity_type, extra={"component": "audit"})
            return None

        fields = {
            "action": action,
            "entity_type": entity_type,
            "entity_id": str(entry.entity_id),
            "user_id": str(entry.user_id),
            "user_name": entry.user_name or "",
            "user_role": getattr(entry.user_role, "value", entry.user_role) or "",
            "details": entry.details or "",
            "previous_value": sanitize_snapshot(entry.previous_value, nested=self.redact_nested),
            "new_value": sanitize_snapshot(entry.new_value, nested=self.redact_nested),
            "timestamp": self.clock(),
            "ip_address": entry.ip_address,
            "user_agent": entry.user_agent,
        }
        try:
            return self._persist(fields)
        except AuditWriteFailure as failure:
            logger.error(
                "Error logging audit activity: %s", failure.message,
                exc_info=failure.cause,
                extra={
                    "component": "audit",
                    "action": action.value,
                    "entity_type": entity_type.value,
                    "entity_id": fields["entity_id"],
                    "user_id": fields["user_id"],
                },
            )
            return None

    def _persist(self, fields: dict) -> AuditLogEntry:
        try:
            return self.repository.add(fields)
        except Exception as exc:
            self._rollback()
            raise AuditWriteFailure(str(exc), cause=exc) from exc

    def entity_logs(
        self,
        entity_type: Optional[str],
        entity_id: Optional[str],
        limit: int = 100,
        offset: int = 0
    ) -> List[AuditLogEntry]:
        """All entries for one entity, newest first."""
        if not entity_type or not entity_id:
            logger.warning("Missing entityType or entityId for audit log query", extra={"component": "audit"})
            return []
        try:
            kind = EntityType(entity_type)
        except ValueError:
            logger.warning("Invalid entity type: %s", entity_type, extra={"component": "audit"})
            return []
        return self._query(
            "Error fetching entity logs",
            entity_type=kind,
            entity_id=entity_id,
            limit=limit,
            offset=offset,
        )

    def status_history(self, ticket_id: Optional[str]) -> List[AuditLogEntry]:
        """STATUS_CHANGE entries for a ticket, oldest first, for timeline reconstruction."""
        if not ticket_id:
            logger.warning("Missing ticketId for status history query", extra={"component": "audit"})
            return []
        return self._query(
            "Error fetching ticket status history",
            ascending=True,
            entity_type=EntityType.TICKET,
            entity_id=ticket_id,
            action=AuditAction.STATUS_CHANGE,
        )

    def status_history_count(
        self,
        ticket_id: Optional[str],
        start: datetime,
        end: datetime
    ) -> int:
        if not ticket_id:
            logger.warning("Missing ticketId for status history count", extra={"component": "audit"})
            return 0
        try:
            return self.repository.count(
                entity_type=EntityType.TICKET,
                entity_id=ticket_id,
                action=AuditAction.STATUS_CHANGE,
                start=start,
                end=end,
            )
        except Exception:
            logger.exception("Error counting ticket status history", extra={"component": "audit", "entity_id": ticket_id})
            self._rollback()
            return 0

    def status_history_in_range(
        self,
        ticket_id: Optional[str],
        start: datetime,
        end: datetime,
        limit: int = 20,
        offset: int = 0
    ) -> Tuple[int, List[AuditLogEntry]]:
        """Total matching count plus one ascending page of STATUS_CHANGE entries within [start, end]."""
        total = self.status_history_count(ticket_id, start, end)
        if not ticket_id:
            return 0, []
        entries = self._query(
            "Error fetching ticket status history with date range",
            ascending=True,
            entity_type=EntityType.TICKET,
            entity_id=ticket_id,
            action=AuditAction.STATUS_CHANGE,
            start=start,
            end=end,
            limit=limit,
            offset=offset,
        )
        return total, entries

    def recent_activity(self, limit: int = 50, offset: int = 0) -> List[AuditLogEntry]:
        return self._query("Error fetching recent activity", limit=limit, offset=offset)

    def user_activity(
        self,
        user_id: Optional[str],
        limit: int = 50,
        offset: int = 0
    ) -> List[AuditLogEntry]:
        if not user_id:
            logger.warning("Missing userId for user activity query", extra={"component": "audit"})
            return []
        return self._query("Error fetching user activity", user_id=user_id, limit=limit, offset=offset)

    def _query(self, failure_message: str, **kwargs) -> List[AuditLogEntry]:
        try:
            return self.repository.find(**kwargs)
        except Exception:
            logger.exception(failure_message, extra={"component": "audit"})
            self._rollback()
            return []

    def _rollback(self) -> None:
        # A failed statement leaves the transaction aborted on PostgreSQL
        try:
            self.repository.rollback()
        except Exception:
            logger.exception("Rollback after failed audit statement also failed", extra={"component": "audit"})
