"""Enums for the approval workflow - these define the valid values for roles, states and audit records."""
from enum import Enum


class TicketStatus(str, Enum):
    """The four states a ticket can be in. No other states are allowed."""
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class UserRole(str, Enum):
    REQUESTER = "REQUESTER"
    APPROVER = "APPROVER"
    ADMIN = "ADMIN"


class Department(str, Enum):
    PRODUCTION = "PRODUCTION"
    QUALITY = "QUALITY"
    MAINTENANCE = "MAINTENANCE"
    ENGINEERING = "ENGINEERING"


class AuditAction(str, Enum):
    """Closed set of actions an audit entry may record."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"
    VIEW = "VIEW"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class EntityType(str, Enum):
    """Closed set of entity kinds an audit entry may refer to."""
    TICKET = "TICKET"
    USER = "USER"
    CHEMICAL_CONFIG = "CHEMICAL_CONFIG"
    ATTACHMENT = "ATTACHMENT"
    SYSTEM = "SYSTEM"
