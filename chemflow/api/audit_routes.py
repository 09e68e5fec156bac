"""API routes for reading the audit trail."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from chemflow.api.deps import get_audit_query_service, get_principal, to_http
from chemflow.api.schemas import (
    AuditLogResponse,
    ChangedBy,
    DateRange,
    Pagination,
    StatusHistoryItemResponse,
    StatusHistoryResponse
)
from chemflow.models.domain import Principal
from chemflow.services.audit_queries import AuditQueryService
from chemflow.services.errors import TicketServiceError

router = APIRouter()


@router.get("/tickets/{ticket_id}/status-history", response_model=StatusHistoryResponse)
def ticket_status_history(
    ticket_id: str,
    page: int = Query(1),
    limit: int = Query(20),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    principal: Principal = Depends(get_principal),
    service: AuditQueryService = Depends(get_audit_query_service)
):
    """Status changes for a ticket, oldest first, paginated within a date window."""
    try:
        result = service.get_ticket_status_history(
            principal, ticket_id, start_date=start_date, end_date=end_date, page=page, limit=limit
        )
    except TicketServiceError as e:
        raise to_http(e)
    return StatusHistoryResponse(
        status_history=[
            StatusHistoryItemResponse(
                id=item.id,
                ticket_id=item.ticket_id,
                previous_status=item.previous_status,
                new_status=item.new_status,
                changed_by=ChangedBy(
                    id=item.changed_by_id,
                    full_name=item.changed_by_name,
                    role=item.changed_by_role,
                ),
                changed_at=item.changed_at,
                comments=item.comments,
            )
            for item in result.items
        ],
        pagination=Pagination(total=result.total, page=result.page, limit=result.limit, pages=result.pages),
        date_range=DateRange(start_date=result.start_date, end_date=result.end_date),
    )


@router.get("/tickets/{ticket_id}/logs", response_model=List[AuditLogResponse])
def ticket_logs(
    ticket_id: str,
    limit: int = Query(100),
    skip: int = Query(0),
    principal: Principal = Depends(get_principal),
    service: AuditQueryService = Depends(get_audit_query_service)
):
    """Full audit trail for a ticket (admin only)."""
    try:
        entries = service.get_entity_audit_logs(principal, ticket_id, limit=limit, offset=skip)
    except TicketServiceError as e:
        raise to_http(e)
    return [AuditLogResponse.model_validate(e) for e in entries]


@router.get("/recent", response_model=List[AuditLogResponse])
def recent_activity(
    limit: int = Query(50),
    skip: int = Query(0),
    principal: Principal = Depends(get_principal),
    service: AuditQueryService = Depends(get_audit_query_service)
):
    """System-wide activity, newest first (admin only)."""
    try:
        entries = service.get_recent_activity(principal, limit=limit, offset=skip)
    except TicketServiceError as e:
        raise to_http(e)
    return [AuditLogResponse.model_validate(e) for e in entries]


@router.get("/users/{user_id}", response_model=List[AuditLogResponse])
def user_activity(
    user_id: str,
    limit: int = Query(50),
    skip: int = Query(0),
    principal: Principal = Depends(get_principal),
    service: AuditQueryService = Depends(get_audit_query_service)
):
    """Activity by one user. Non-admins may only read their own."""
    try:
        entries = service.get_user_activity(principal, user_id, limit=limit, offset=skip)
    except TicketServiceError as e:
        raise to_http(e)
    return [AuditLogResponse.model_validate(e) for e in entries]
