"""Persisted records for users and tickets."""
import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum as SQLEnum, JSON, String

from chemflow.clock import utcnow
from chemflow.database import Base
from chemflow.models.enums import Department, TicketStatus, UserRole


class UserRecord(Base):
    """
    User directory entry. Credentials are managed elsewhere; only the
    fields the workflow and audit trail need are kept here.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String, nullable=False, unique=True)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.REQUESTER)
    department = Column(SQLEnum(Department), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)


class TicketRecord(Base):
    """
    Persisted ticket row.

    requester_id is a plain string rather than a foreign key so the audit
    trail and tickets survive removal of a user record.
    """
    __tablename__ = "tickets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    chemical_config = Column(JSON, nullable=False)
    attachments = Column(JSON, nullable=False, default=list)
    status = Column(SQLEnum(TicketStatus), nullable=False, default=TicketStatus.DRAFT, index=True)
    requester_id = Column(String(36), nullable=False, index=True)
    department = Column(SQLEnum(Department), nullable=True)
    request_date = Column(DateTime, nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
