"""
Workflow policy for ticket status transitions.

Pure functions with no storage access. Every status change the ticket
service performs is authorized here.
"""
from enum import Enum
from typing import Optional, Type, TypeVar, Union

from chemflow.models.enums import TicketStatus, UserRole

E = TypeVar("E", bound=Enum)

# APPROVED and REJECTED share a rank; neither is forward of the other
WORKFLOW_RANK = {
    TicketStatus.DRAFT: 0,
    TicketStatus.PENDING: 1,
    TicketStatus.APPROVED: 2,
    TicketStatus.REJECTED: 2,
}

_SETTLED = (TicketStatus.APPROVED, TicketStatus.REJECTED)
_UNSETTLED = (TicketStatus.PENDING, TicketStatus.DRAFT)


def _coerce(enum_cls: Type[E], value: Union[E, str, None]) -> Optional[E]:
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def is_forward_movement(
    current: Union[TicketStatus, str],
    target: Union[TicketStatus, str]
) -> bool:
    """True when target has a strictly higher workflow rank than current."""
    current_status = _coerce(TicketStatus, current)
    target_status = _coerce(TicketStatus, target)
    if current_status is None or target_status is None:
        return False
    return WORKFLOW_RANK[target_status] > WORKFLOW_RANK[current_status]


def can_transition(
    role: Union[UserRole, str],
    is_own_ticket: bool,
    current_status: Union[TicketStatus, str],
    target_status: Union[TicketStatus, str]
) -> bool:
    """
    Decide whether a principal may move a ticket from current_status to target_status.

    Rules, in priority order:
    - ADMIN may make any move, including APPROVED <-> REJECTED
    - APPROVER on their own ticket may make any move except from
      APPROVED/REJECTED back to PENDING/DRAFT
    - APPROVER on someone else's ticket may only move strictly forward,
      and never out of DRAFT
    - REQUESTER may only submit their own DRAFT ticket to PENDING
    - Anything else is denied

    Callers must not present no-op transitions (current == target).
    """
    user_role = _coerce(UserRole, role)
    current = _coerce(TicketStatus, current_status)
    target = _coerce(TicketStatus, target_status)
    if user_role is None or current is None or target is None:
        return False

    if user_role == UserRole.ADMIN:
        return True

    if user_role == UserRole.APPROVER:
        if is_own_ticket:
            return not (current in _SETTLED and target in _UNSETTLED)
        return current != TicketStatus.DRAFT and is_forward_movement(current, target)

    if user_role == UserRole.REQUESTER:
        return (
            is_own_ticket
            and current == TicketStatus.DRAFT
            and target == TicketStatus.PENDING
        )

    return False


def can_update(
    role: Union[UserRole, str],
    is_owner: bool,
    current_status: Union[TicketStatus, str],
    target_status: Union[TicketStatus, str, None] = None
) -> bool:
    """
    General update permission, checked alongside transition authorization.

    Granted to admins, to the ticket owner, or to an approver whose
    requested status change passes can_transition. target_status is None
    when the patch carries no real status change.
    """
    user_role = _coerce(UserRole, role)
    if user_role == UserRole.ADMIN or is_owner:
        return True
    return (
        user_role == UserRole.APPROVER
        and target_status is not None
        and can_transition(UserRole.APPROVER, is_owner, current_status, target_status)
    )
