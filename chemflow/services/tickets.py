"""
Ticket service - orchestrates the ticket lifecycle.

Loads current state, authorizes through the workflow policy, applies the
change, then hands the audit recorder a description of what happened.
Business errors propagate to the caller; audit failures never do.
"""
import json
import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy.orm import Session

from chemflow.clock import Clock, to_naive_utc, utcnow
from chemflow.config import DeletePolicy, Settings
from chemflow.models.domain import (
    Attachment,
    AuditEntryInput,
    Principal,
    RequestContext,
    StoredFile,
    Ticket,
    TicketDraft,
    TicketPage,
    TicketPatch,
    User
)
from chemflow.models.enums import AuditAction, EntityType, TicketStatus, UserRole
from chemflow.services.audit import AuditRecorder
from chemflow.services.errors import (
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    UnauthenticatedError
)
from chemflow.services.repository import AuditLogRepository, TicketRepository, UserRepository
from chemflow.services.workflow import can_update

logger = logging.getLogger(__name__)

# Statuses every approver can see regardless of ownership
APPROVER_VISIBLE_STATUSES = (TicketStatus.PENDING, TicketStatus.APPROVED, TicketStatus.REJECTED)

# Snapshot keys that do not count as an edit when comparing before/after
_NON_CONTENT_KEYS = ("status", "updatedAt")


def parse_chemical_config(raw: Union[str, Mapping[str, Any], None]) -> Optional[Dict[str, Any]]:
    """Accept a JSON object string or a mapping. None means no change."""
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError("Invalid chemical configuration format") from exc
    if not isinstance(parsed, dict):
        raise InvalidInputError("Invalid chemical configuration format")
    return parsed


def _parse_status(raw: Optional[str]) -> Optional[TicketStatus]:
    if not raw:
        return None
    try:
        return TicketStatus(raw)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid ticket status: {raw}") from exc


def _content(snapshot: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in snapshot.items() if k not in _NON_CONTENT_KEYS}


class TicketService:
    """High level orchestration for ticket lifecycle operations."""

    def __init__(
        self,
        tickets: TicketRepository,
        users: UserRepository,
        recorder: AuditRecorder,
        clock: Clock = utcnow,
        delete_policy: DeletePolicy = DeletePolicy.AUTHENTICATED,
        default_window_days: int = 30
    ):
        self.tickets = tickets
        self.users = users
        self.recorder = recorder
        self.clock = clock
        self.delete_policy = DeletePolicy(delete_policy)
        self.default_window_days = default_window_days

    @classmethod
    def from_session(cls, db: Session, settings: Settings, clock: Clock = utcnow) -> "TicketService":
        return cls(
            tickets=TicketRepository(db),
            users=UserRepository(db),
            recorder=AuditRecorder(AuditLogRepository(db), clock=clock, redact_nested=settings.redact_nested),
            clock=clock,
            delete_policy=settings.delete_policy,
            default_window_days=settings.default_window_days,
        )

    # Principal handling

    def _require_principal(self, principal: Optional[Principal]) -> Principal:
        if principal is None or not principal.id:
            raise UnauthenticatedError("Unauthorized")
        return principal

    def _resolve_user(self, principal: Principal) -> User:
        user = self.users.get(principal.id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _load(self, ticket_id: str) -> Ticket:
        ticket = self.tickets.get(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found")
        return ticket

    def _stamp(self, uploads: Sequence[StoredFile], uploader_id: str) -> List[Attachment]:
        uploaded_at = self.clock()
        return [
            Attachment(
                id=f.filename,
                name=f.original_name,
                url=f.url,
                mime_type=f.mime_type,
                size_bytes=f.size_bytes,
                uploaded_by=uploader_id,
                uploaded_at=uploaded_at,
            )
            for f in uploads
        ]

    def _audit(
        self,
        action: AuditAction,
        ticket_id: str,
        principal: Principal,
        user: User,
        details: str,
        context: Optional[RequestContext],
        previous_value: Any = None,
        new_value: Any = None
    ) -> None:
        context = context or RequestContext()
        self.recorder.record(AuditEntryInput(
            action=action,
            entity_type=EntityType.TICKET,
            entity_id=ticket_id,
            user_id=principal.id,
            user_name=user.full_name,
            user_role=principal.role.value,
            details=details,
            previous_value=previous_value,
            new_value=new_value,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        ))

    # Operations

    def create(
        self,
        principal: Optional[Principal],
        draft: TicketDraft,
        uploads: Sequence[StoredFile] = (),
        context: Optional[RequestContext] = None
    ) -> Ticket:
        """
        Create a ticket in DRAFT for the principal.

        requester_id, department and request_date are fixed here and never
        change afterwards. The CREATE entry is recorded after the ticket is
        stored so that it can reference the stored id.
        """
        principal = self._require_principal(principal)
        if not draft.title or not draft.description:
            raise InvalidInputError("Title and description are required")
        chemical_config = parse_chemical_config(draft.chemical_config)
        if chemical_config is None:
            raise InvalidInputError("Chemical configuration is required")

        requester = self._resolve_user(principal)
        ticket = Ticket(
            id=str(uuid.uuid4()),
            title=draft.title,
            description=draft.description,
            chemical_config=chemical_config,
            status=TicketStatus.DRAFT,
            requester_id=requester.id,
            department=requester.department,
            request_date=self.clock(),
            attachments=self._stamp(uploads, principal.id),
        )
        created = self.tickets.add(ticket)
        logger.info("Ticket created", extra={"entity_id": created.id, "user_id": principal.id})

        self._audit(
            AuditAction.CREATE, created.id, principal, requester, "Ticket created", context,
            new_value=created.snapshot(),
        )
        return created

    def get(
        self,
        principal: Optional[Principal],
        ticket_id: str,
        track_view: bool = False,
        context: Optional[RequestContext] = None
    ) -> Ticket:
        """Fetch one ticket. Records a VIEW entry only when track_view is set."""
        principal = self._require_principal(principal)
        ticket = self._load(ticket_id)
        if track_view:
            user = self._resolve_user(principal)
            self._audit(AuditAction.VIEW, ticket.id, principal, user, "Ticket viewed", context)
        return ticket

    def list(
        self,
        principal: Optional[Principal],
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20
    ) -> TicketPage:
        """
        Tickets visible to the principal within a request-date window.

        - ADMIN sees every ticket
        - APPROVER sees PENDING/APPROVED/REJECTED tickets plus their own
        - REQUESTER sees only their own
        The window defaults to the last default_window_days days ending now.
        """
        principal = self._require_principal(principal)
        page = page if page and page > 0 else 1
        limit = limit if limit and limit > 0 else 20
        end = to_naive_utc(end_date) or self.clock()
        start = to_naive_utc(start_date) or (end - timedelta(days=self.default_window_days))

        if principal.role == UserRole.ADMIN:
            scope = {}
        elif principal.role == UserRole.APPROVER:
            scope = {"owner_id": principal.id, "statuses": APPROVER_VISIBLE_STATUSES}
        else:
            scope = {"owner_id": principal.id}

        logger.debug(
            "Listing tickets from %s to %s page %s", start.isoformat(), end.isoformat(), page,
            extra={"user_id": principal.id, "role": principal.role.value},
        )
        total, tickets = self.tickets.find(
            start=start,
            end=end,
            offset=(page - 1) * limit,
            limit=limit,
            **scope
        )
        return TicketPage(
            tickets=tickets,
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit),
            start_date=start,
            end_date=end,
        )

    def update(
        self,
        principal: Optional[Principal],
        ticket_id: str,
        patch: TicketPatch,
        uploads: Sequence[StoredFile] = (),
        context: Optional[RequestContext] = None
    ) -> Ticket:
        """
        Apply a patch and, when the status really changes, a workflow transition.

        A status equal to the current one is treated as no status change.
        A real status change records STATUS_CHANGE, plus APPROVE or REJECT
        when the new status is APPROVED or REJECTED. Field edits record
        UPDATE with full before/after snapshots. Nothing is mutated and
        nothing is recorded when the patch is malformed or denied.
        """
        principal = self._require_principal(principal)
        requested_status = _parse_status(patch.status)
        chemical_config = parse_chemical_config(patch.chemical_config)

        ticket = self._load(ticket_id)
        user = self._resolve_user(principal)
        is_owner = ticket.is_owned_by(principal.id)

        previous_status = ticket.status
        target = requested_status if requested_status not in (None, previous_status) else None
        if not can_update(principal.role, is_owner, previous_status, target):
            raise ForbiddenError("Not authorized to update this ticket")

        before = ticket.snapshot()
        if patch.title:
            ticket.title = patch.title
        if patch.description:
            ticket.description = patch.description
        if chemical_config is not None:
            ticket.chemical_config = chemical_config
        if uploads:
            ticket.attachments = ticket.attachments + self._stamp(uploads, principal.id)
        if target is not None:
            ticket.status = target

        updated = self.tickets.save(ticket)
        if updated is None:
            raise NotFoundError("Ticket not found after update")
        after = updated.snapshot()

        if target is None:
            self._audit(
                AuditAction.UPDATE, updated.id, principal, user, "Ticket updated", context,
                previous_value=before, new_value=after,
            )
            return updated

        logger.info(
            "Ticket status changed from %s to %s", previous_status.value, updated.status.value,
            extra={"entity_id": updated.id, "user_id": principal.id, "role": principal.role.value},
        )
        self._audit(
            AuditAction.STATUS_CHANGE, updated.id, principal, user,
            f"Status changed from {previous_status.value} to {updated.status.value}", context,
            previous_value={"status": previous_status.value},
            new_value={"status": updated.status.value},
        )
        if updated.status == TicketStatus.APPROVED:
            self._audit(AuditAction.APPROVE, updated.id, principal, user, "Ticket approved", context)
        elif updated.status == TicketStatus.REJECTED:
            self._audit(AuditAction.REJECT, updated.id, principal, user, "Ticket rejected", context)

        if _content(before) != _content(after):
            self._audit(
                AuditAction.UPDATE, updated.id, principal, user, "Ticket updated", context,
                previous_value=before, new_value=after,
            )
        return updated

    def _check_delete_permission(self, principal: Principal, ticket: Ticket) -> None:
        if self.delete_policy == DeletePolicy.AUTHENTICATED:
            return
        if principal.role == UserRole.ADMIN:
            return
        if self.delete_policy == DeletePolicy.OWNER_OR_ADMIN and ticket.is_owned_by(principal.id):
            return
        raise ForbiddenError("Not authorized to delete this ticket")

    def delete(
        self,
        principal: Optional[Principal],
        ticket_id: str,
        context: Optional[RequestContext] = None
    ) -> None:
        """Delete a ticket. Its audit history is kept."""
        principal = self._require_principal(principal)
        ticket = self._load(ticket_id)
        user = self._resolve_user(principal)
        self._check_delete_permission(principal, ticket)

        snapshot = ticket.snapshot()
        if not self.tickets.delete(ticket.id):
            raise NotFoundError("Ticket not found")
        logger.info("Ticket deleted", extra={"entity_id": ticket.id, "user_id": principal.id})

        self._audit(
            AuditAction.DELETE, ticket.id, principal, user, "Ticket deleted", context,
            previous_value=snapshot,
        )
