"""
Domain value types - the shapes services work with.

These are deliberately separate from the SQLAlchemy records in
records.py and audit.py; the repository maps between the two.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from chemflow.models.enums import (
    AuditAction,
    Department,
    EntityType,
    TicketStatus,
    UserRole
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Principal:
    """The authenticated actor as produced by authentication: id and role only."""
    id: str
    role: UserRole

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", UserRole(self.role))


@dataclass(frozen=True)
class User:
    """A resolved user directory entry."""
    id: str
    username: str
    full_name: str
    role: UserRole
    department: Optional[Department] = None
    email: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class StoredFile:
    """Metadata returned by file storage for one saved upload."""
    filename: str
    original_name: str
    mime_type: str
    size_bytes: int
    url: str


@dataclass(frozen=True)
class Attachment:
    id: str
    name: str
    url: str
    mime_type: str
    size_bytes: int
    uploaded_by: str
    uploaded_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "mimeType": self.mime_type,
            "sizeBytes": self.size_bytes,
            "uploadedBy": self.uploaded_by,
            "uploadedAt": _iso(self.uploaded_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Attachment":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            url=str(data.get("url", "")),
            mime_type=str(data.get("mimeType", "")),
            size_bytes=int(data.get("sizeBytes", 0)),
            uploaded_by=str(data.get("uploadedBy", "")),
            uploaded_at=datetime.fromisoformat(data["uploadedAt"]),
        )


# Fields fixed at construction; the service must never try to rewrite them
WRITE_ONCE_FIELDS = ("id", "requester_id", "request_date")


@dataclass
class Ticket:
    """
    A chemical configuration change request.

    Invariants enforced here:
    - status is always one of the four TicketStatus values
    - id, requester_id and request_date are set exactly once
    - Created with DRAFT status (handled in service layer)
    """
    id: str
    title: str
    description: str
    chemical_config: Dict[str, Any]
    status: TicketStatus
    requester_id: str
    department: Optional[Department]
    request_date: datetime
    attachments: List[Attachment] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in WRITE_ONCE_FIELDS and name in self.__dict__:
            raise AttributeError(
                f"IMMUTABILITY VIOLATION: {name} cannot be changed after creation"
            )
        if name == "status":
            value = TicketStatus(value)
        object.__setattr__(self, name, value)

    def is_owned_by(self, user_id: str) -> bool:
        return self.requester_id == str(user_id)

    def snapshot(self) -> Dict[str, Any]:
        """Full JSON-ready view of the ticket, used for audit before/after values."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "chemicalConfig": dict(self.chemical_config),
            "attachments": [a.to_dict() for a in self.attachments],
            "status": self.status.value,
            "requesterId": self.requester_id,
            "department": self.department.value if self.department else None,
            "requestDate": _iso(self.request_date),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass
class TicketDraft:
    """Fields a requester supplies when creating a ticket."""
    title: str
    description: str
    chemical_config: Union[str, Mapping[str, Any], None]


@dataclass
class TicketPatch:
    """
    Fields a caller may change on an existing ticket.

    There is intentionally no requester_id, request_date or department here.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    chemical_config: Union[str, Mapping[str, Any], None] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class RequestContext:
    """Transport metadata copied into audit entries."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class TicketPage:
    tickets: List[Ticket]
    total: int
    page: int
    limit: int
    pages: int
    start_date: datetime
    end_date: datetime


@dataclass
class AuditEntryInput:
    """
    Caller-side audit payload. Every field is optional so that the recorder,
    not the caller, decides whether an entry is complete.
    """
    action: Optional[Union[AuditAction, str]] = None
    entity_type: Optional[Union[EntityType, str]] = None
    entity_id: Optional[str] = None
    user_id: Optional[str] = None
    user_name: str = ""
    user_role: str = ""
    details: str = ""
    previous_value: Any = None
    new_value: Any = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: Optional[datetime] = None  # ignored, the recorder stamps entries


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable, persisted audit entry."""
    id: int
    action: AuditAction
    entity_type: EntityType
    entity_id: str
    user_id: str
    user_name: str
    user_role: str
    details: str
    timestamp: datetime
    previous_value: Any = None
    new_value: Any = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
