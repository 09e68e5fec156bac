"""FastAPI dependencies: principal, services and request metadata."""
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from chemflow.config import Settings
from chemflow.database import get_db
from chemflow.models.domain import Principal, RequestContext
from chemflow.services.audit import AuditRecorder
from chemflow.services.audit_queries import AuditQueryService
from chemflow.services.errors import TicketServiceError, UnauthenticatedError
from chemflow.services.repository import AuditLogRepository
from chemflow.services.tickets import TicketService
from chemflow.storage import LocalFileStorage

bearer_scheme = HTTPBearer(auto_error=False)


def to_http(exc: TicketServiceError) -> HTTPException:
    """Translate a service error into the matching HTTP error."""
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> LocalFileStorage:
    return request.app.state.storage


def get_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)
) -> Principal:
    token = credentials.credentials if credentials else None
    try:
        return request.app.state.authenticator.authenticate(token)
    except UnauthenticatedError as e:
        raise to_http(e)


def get_request_context(request: Request) -> RequestContext:
    forwarded = request.headers.get("x-forwarded-for")
    if request.client and request.client.host:
        ip_address = request.client.host
    else:
        ip_address = forwarded or "unknown"
    return RequestContext(
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent", "unknown"),
    )


def get_ticket_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> TicketService:
    return TicketService.from_session(db, settings)


def get_audit_query_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> AuditQueryService:
    recorder = AuditRecorder(AuditLogRepository(db), redact_nested=settings.redact_nested)
    return AuditQueryService(recorder, default_window_days=settings.default_window_days)
