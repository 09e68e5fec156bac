"""
Persistence collaborator.

Maps between SQLAlchemy records and domain value types so nothing above
this module handles a record directly.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from chemflow.models.audit import AuditLogRecord
from chemflow.models.domain import Attachment, AuditLogEntry, Ticket, User
from chemflow.models.enums import AuditAction, Department, EntityType, TicketStatus, UserRole
from chemflow.models.records import TicketRecord, UserRecord


def ticket_from_record(record: TicketRecord) -> Ticket:
    return Ticket(
        id=record.id,
        title=record.title,
        description=record.description,
        chemical_config=dict(record.chemical_config or {}),
        status=record.status,
        requester_id=record.requester_id,
        department=record.department,
        request_date=record.request_date,
        attachments=[Attachment.from_dict(a) for a in (record.attachments or [])],
        updated_at=record.updated_at,
    )


def user_from_record(record: UserRecord) -> User:
    return User(
        id=record.id,
        username=record.username,
        full_name=record.full_name,
        role=record.role,
        department=record.department,
        email=record.email,
        is_active=record.is_active,
    )


def audit_entry_from_record(record: AuditLogRecord) -> AuditLogEntry:
    return AuditLogEntry(
        id=record.id,
        action=record.action,
        entity_type=record.entity_type,
        entity_id=record.entity_id,
        user_id=record.user_id,
        user_name=record.user_name,
        user_role=record.user_role,
        details=record.details,
        timestamp=record.timestamp,
        previous_value=record.previous_value,
        new_value=record.new_value,
        ip_address=record.ip_address,
        user_agent=record.user_agent,
    )


class UserRepository:
    """Read access to the user directory, plus creation for seeding and tests."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[User]:
        record = self.db.get(UserRecord, str(user_id))
        return user_from_record(record) if record else None

    def get_by_username(self, username: str) -> Optional[User]:
        record = self.db.query(UserRecord).filter(UserRecord.username == username).first()
        return user_from_record(record) if record else None

    def add(
        self,
        username: str,
        full_name: str,
        role: UserRole,
        department: Optional[Department] = None,
        email: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> User:
        record = UserRecord(
            username=username,
            full_name=full_name,
            role=role,
            department=department,
            email=email,
        )
        if user_id is not None:
            record.id = user_id
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return user_from_record(record)


class TicketRepository:
    """Ticket storage: create, find, save and delete."""

    def __init__(self, db: Session):
        self.db = db

    def add(self, ticket: Ticket) -> Ticket:
        record = TicketRecord(
            id=ticket.id,
            title=ticket.title,
            description=ticket.description,
            chemical_config=dict(ticket.chemical_config),
            attachments=[a.to_dict() for a in ticket.attachments],
            status=ticket.status,
            requester_id=ticket.requester_id,
            department=ticket.department,
            request_date=ticket.request_date,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return ticket_from_record(record)

    def get(self, ticket_id: str) -> Optional[Ticket]:
        record = self.db.get(TicketRecord, str(ticket_id))
        return ticket_from_record(record) if record else None

    def save(self, ticket: Ticket) -> Optional[Ticket]:
        """
        Write back the mutable fields of ticket.
        requester_id, department and request_date are never written here.
        """
        record = self.db.get(TicketRecord, ticket.id)
        if record is None:
            return None
        record.title = ticket.title
        record.description = ticket.description
        record.chemical_config = dict(ticket.chemical_config)
        record.attachments = [a.to_dict() for a in ticket.attachments]
        record.status = ticket.status
        self.db.commit()
        self.db.refresh(record)
        return ticket_from_record(record)

    def delete(self, ticket_id: str) -> bool:
        record = self.db.get(TicketRecord, str(ticket_id))
        if record is None:
            return False
        self.db.delete(record)
        self.db.commit()
        return True

    def find(
        self,
        start: datetime,
        end: datetime,
        owner_id: Optional[str] = None,
        statuses: Optional[Sequence[TicketStatus]] = None,
        offset: int = 0,
        limit: int = 20
    ) -> Tuple[int, List[Ticket]]:
        """
        Tickets requested within [start, end], newest first.

        When both owner_id and statuses are given they combine with OR:
        a ticket matches if it is owned by owner_id or has one of statuses.
        """
        query = self.db.query(TicketRecord).filter(
            TicketRecord.request_date >= start,
            TicketRecord.request_date <= end
        )
        if owner_id is not None and statuses:
            query = query.filter(or_(
                TicketRecord.status.in_(list(statuses)),
                TicketRecord.requester_id == owner_id
            ))
        elif owner_id is not None:
            query = query.filter(TicketRecord.requester_id == owner_id)
        elif statuses:
            query = query.filter(TicketRecord.status.in_(list(statuses)))

        total = query.count()
        records = (
            query.order_by(TicketRecord.request_date.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return total, [ticket_from_record(r) for r in records]


class AuditLogRepository:
    """
    Append-only audit storage. There is no update or delete.
    """

    def __init__(self, db: Session):
        self.db = db

    def add(self, fields: Dict[str, Any]) -> AuditLogEntry:
        record = AuditLogRecord(**fields)
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return audit_entry_from_record(record)

    def rollback(self) -> None:
        self.db.rollback()

    def _filtered(
        self,
        entity_type: Optional[EntityType] = None,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Query:
        query = self.db.query(AuditLogRecord)
        if entity_type is not None:
            query = query.filter(AuditLogRecord.entity_type == entity_type)
        if entity_id is not None:
            query = query.filter(AuditLogRecord.entity_id == str(entity_id))
        if user_id is not None:
            query = query.filter(AuditLogRecord.user_id == str(user_id))
        if action is not None:
            query = query.filter(AuditLogRecord.action == action)
        if start is not None:
            query = query.filter(AuditLogRecord.timestamp >= start)
        if end is not None:
            query = query.filter(AuditLogRecord.timestamp <= end)
        return query

    def find(
        self,
        ascending: bool = False,
        offset: int = 0,
        limit: Optional[int] = None,
        **filters: Any
    ) -> List[AuditLogEntry]:
        query = self._filtered(**filters)
        if ascending:
            query = query.order_by(AuditLogRecord.timestamp.asc(), AuditLogRecord.id.asc())
        else:
            query = query.order_by(AuditLogRecord.timestamp.desc(), AuditLogRecord.id.desc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [audit_entry_from_record(r) for r in query.all()]

    def count(self, **filters: Any) -> int:
        return self._filtered(**filters).count()
