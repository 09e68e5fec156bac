"""Pydantic schemas for request/response validation. Field names are camelCase on the wire."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from chemflow.models.enums import AuditAction, Department, EntityType, TicketStatus, UserRole


class CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


# Ticket schemas
class AttachmentResponse(CamelModel):
    id: str
    name: str
    url: str
    mime_type: str
    size_bytes: int
    uploaded_by: str
    uploaded_at: datetime


class TicketResponse(CamelModel):
    id: str
    title: str
    description: str
    chemical_config: Dict[str, Any]
    attachments: List[AttachmentResponse]
    status: TicketStatus
    requester_id: str
    department: Optional[Department]
    request_date: datetime
    updated_at: Optional[datetime]


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    pages: int


class DateRange(CamelModel):
    start_date: datetime
    end_date: datetime


class TicketListResponse(CamelModel):
    tickets: List[TicketResponse]
    pagination: Pagination
    date_range: DateRange


# Audit schemas
class AuditLogResponse(CamelModel):
    id: int
    action: AuditAction
    entity_type: EntityType
    entity_id: str
    user_id: str
    user_name: str
    user_role: str
    previous_value: Optional[Any] = None
    new_value: Optional[Any] = None
    details: str
    timestamp: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class ChangedBy(CamelModel):
    id: str
    full_name: str
    role: str


class StatusHistoryItemResponse(CamelModel):
    id: int
    ticket_id: str
    previous_status: str
    new_status: str
    changed_by: ChangedBy
    changed_at: datetime
    comments: str


class StatusHistoryResponse(CamelModel):
    status_history: List[StatusHistoryItemResponse]
    pagination: Pagination
    date_range: DateRange


class MessageResponse(CamelModel):
    message: str


class UserResponse(CamelModel):
    id: str
    username: str
    full_name: str
    role: UserRole
    department: Optional[Department]
