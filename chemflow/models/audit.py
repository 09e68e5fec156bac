"""
Audit log record - the persisted shape of an audit entry.

This model exists to provide an immutable, append-only trail of every
permitted mutation. It has no relationship to the tickets table so that
deleting a ticket never removes its history.
"""
from sqlalchemy import Column, DateTime, Enum as SQLEnum, Index, Integer, JSON, String

from chemflow.database import Base
from chemflow.models.enums import AuditAction, EntityType


class AuditLogRecord(Base):
    """
    Immutable audit entry.

    Invariants:
    - Once written, never edited or deleted
    - Append-only; id order is insertion order and breaks timestamp ties
    - previous_value/new_value are stored already sanitized
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    entity_type = Column(SQLEnum(EntityType), nullable=False)
    entity_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False, index=True)
    user_name = Column(String, nullable=False, default="")
    user_role = Column(String, nullable=False, default="")
    previous_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    details = Column(String, nullable=False, default="")
    timestamp = Column(DateTime, nullable=False, index=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )
