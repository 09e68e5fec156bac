"""API routes for tickets."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from chemflow.api.deps import (
    get_principal,
    get_request_context,
    get_storage,
    get_ticket_service,
    to_http
)
from chemflow.api.schemas import (
    DateRange,
    MessageResponse,
    Pagination,
    TicketListResponse,
    TicketResponse,
    UserResponse
)
from chemflow.models.domain import Principal, RequestContext, TicketDraft, TicketPatch
from chemflow.services.errors import NotFoundError, TicketServiceError
from chemflow.services.tickets import TicketService
from chemflow.storage import LocalFileStorage

router = APIRouter()


@router.post("/tickets", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(
    title: str = Form(...),
    description: str = Form(...),
    chemical_config: str = Form(..., alias="chemicalConfig"),
    files: Optional[List[UploadFile]] = File(None),
    principal: Principal = Depends(get_principal),
    context: RequestContext = Depends(get_request_context),
    service: TicketService = Depends(get_ticket_service),
    storage: LocalFileStorage = Depends(get_storage)
):
    """Create a new ticket in DRAFT status."""
    draft = TicketDraft(title=title, description=description, chemical_config=chemical_config)
    stored = storage.save_uploads(files)
    try:
        ticket = service.create(principal, draft, uploads=stored, context=context)
    except TicketServiceError as e:
        storage.discard(stored)
        raise to_http(e)
    return TicketResponse.model_validate(ticket)


@router.get("/tickets", response_model=TicketListResponse)
def list_tickets(
    page: int = Query(1),
    limit: int = Query(20),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    principal: Principal = Depends(get_principal),
    service: TicketService = Depends(get_ticket_service)
):
    """List tickets visible to the caller, newest first. Defaults to the last 30 days."""
    try:
        result = service.list(principal, start_date=start_date, end_date=end_date, page=page, limit=limit)
    except TicketServiceError as e:
        raise to_http(e)
    return TicketListResponse(
        tickets=[TicketResponse.model_validate(t) for t in result.tickets],
        pagination=Pagination(total=result.total, page=result.page, limit=result.limit, pages=result.pages),
        date_range=DateRange(start_date=result.start_date, end_date=result.end_date),
    )


@router.get("/tickets/{ticket_id}", response_model=TicketResponse)
def get_ticket(
    ticket_id: str,
    principal: Principal = Depends(get_principal),
    service: TicketService = Depends(get_ticket_service)
):
    try:
        ticket = service.get(principal, ticket_id)
    except TicketServiceError as e:
        raise to_http(e)
    return TicketResponse.model_validate(ticket)


@router.put("/tickets/{ticket_id}", response_model=TicketResponse)
def update_ticket(
    ticket_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    chemical_config: Optional[str] = Form(None, alias="chemicalConfig"),
    ticket_status: Optional[str] = Form(None, alias="status"),
    files: Optional[List[UploadFile]] = File(None),
    principal: Principal = Depends(get_principal),
    context: RequestContext = Depends(get_request_context),
    service: TicketService = Depends(get_ticket_service),
    storage: LocalFileStorage = Depends(get_storage)
):
    """
    Update ticket fields and/or move it through the workflow.
    New files are appended to the existing attachments.
    """
    patch = TicketPatch(
        title=title,
        description=description,
        chemical_config=chemical_config,
        status=ticket_status,
    )
    stored = storage.save_uploads(files)
    try:
        ticket = service.update(principal, ticket_id, patch, uploads=stored, context=context)
    except TicketServiceError as e:
        storage.discard(stored)
        raise to_http(e)
    return TicketResponse.model_validate(ticket)


@router.delete("/tickets/{ticket_id}", response_model=MessageResponse)
def delete_ticket(
    ticket_id: str,
    principal: Principal = Depends(get_principal),
    context: RequestContext = Depends(get_request_context),
    service: TicketService = Depends(get_ticket_service)
):
    try:
        service.delete(principal, ticket_id, context=context)
    except TicketServiceError as e:
        raise to_http(e)
    return MessageResponse(message="Ticket deleted successfully")


@router.get("/users/me", response_model=UserResponse)
def current_user(
    principal: Principal = Depends(get_principal),
    service: TicketService = Depends(get_ticket_service)
):
    """The directory entry behind the caller's token."""
    user = service.users.get(principal.id)
    if user is None:
        raise to_http(NotFoundError("User not found"))
    return UserResponse.model_validate(user)
