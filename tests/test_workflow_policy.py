"""
Tests for the workflow policy.

Each class checks one rule of the transition policy across the full
status grid rather than a hand-picked sample.
"""
from itertools import product

import pytest

from chemflow.models.enums import TicketStatus, UserRole
from chemflow.services.workflow import can_transition, can_update, is_forward_movement

DRAFT = TicketStatus.DRAFT
PENDING = TicketStatus.PENDING
APPROVED = TicketStatus.APPROVED
REJECTED = TicketStatus.REJECTED

ALL_PAIRS = [(a, b) for a, b in product(TicketStatus, TicketStatus) if a != b]


class TestForwardMovement:
    def test_rank_is_antisymmetric(self):
        for a, b in product(TicketStatus, TicketStatus):
            if is_forward_movement(a, b):
                assert not is_forward_movement(b, a)

    def test_approved_and_rejected_are_siblings(self):
        assert not is_forward_movement(APPROVED, REJECTED)
        assert not is_forward_movement(REJECTED, APPROVED)

    def test_forward_moves(self):
        assert is_forward_movement(DRAFT, PENDING)
        assert is_forward_movement(DRAFT, APPROVED)
        assert is_forward_movement(PENDING, REJECTED)
        assert not is_forward_movement(PENDING, DRAFT)
        assert not is_forward_movement(PENDING, PENDING)

    def test_accepts_string_values(self):
        assert is_forward_movement("PENDING", "APPROVED")

    def test_unknown_status_is_never_forward(self):
        assert not is_forward_movement("DRAFT", "ARCHIVED")


class TestAdmin:
    @pytest.mark.parametrize("current,target", ALL_PAIRS)
    @pytest.mark.parametrize("is_owner", [True, False])
    def test_admin_may_make_any_move(self, current, target, is_owner):
        assert can_transition(UserRole.ADMIN, is_owner, current, target)


class TestRequester:
    def test_owner_may_submit_draft(self):
        assert can_transition(UserRole.REQUESTER, True, DRAFT, PENDING)

    def test_every_other_move_is_denied(self):
        for is_owner, (current, target) in product([True, False], ALL_PAIRS):
            if is_owner and (current, target) == (DRAFT, PENDING):
                continue
            assert not can_transition(UserRole.REQUESTER, is_owner, current, target), (
                is_owner, current, target
            )


class TestApprover:
    def test_own_ticket_cannot_move_back_from_settled(self):
        assert not can_transition(UserRole.APPROVER, True, APPROVED, PENDING)
        assert not can_transition(UserRole.APPROVER, True, REJECTED, DRAFT)
        assert not can_transition(UserRole.APPROVER, True, APPROVED, DRAFT)
        assert not can_transition(UserRole.APPROVER, True, REJECTED, PENDING)

    def test_own_ticket_other_moves_allowed(self):
        assert can_transition(UserRole.APPROVER, True, DRAFT, REJECTED)
        assert can_transition(UserRole.APPROVER, True, PENDING, DRAFT)
        assert can_transition(UserRole.APPROVER, True, APPROVED, REJECTED)

    def test_others_ticket_never_from_draft(self):
        for target in (PENDING, APPROVED, REJECTED):
            assert not can_transition(UserRole.APPROVER, False, DRAFT, target)

    def test_others_ticket_forward_only(self):
        assert can_transition(UserRole.APPROVER, False, PENDING, APPROVED)
        assert can_transition(UserRole.APPROVER, False, PENDING, REJECTED)
        assert not can_transition(UserRole.APPROVER, False, APPROVED, PENDING)
        assert not can_transition(UserRole.APPROVER, False, APPROVED, REJECTED)
        assert not can_transition(UserRole.APPROVER, False, PENDING, DRAFT)


class TestUnknownInputs:
    def test_unknown_role_is_denied(self):
        assert not can_transition("AUDITOR", True, DRAFT, PENDING)

    def test_unknown_status_is_denied_even_for_admin(self):
        assert not can_transition(UserRole.ADMIN, True, DRAFT, "ARCHIVED")


class TestUpdateGate:
    def test_admin_and_owner_always_pass(self):
        assert can_update(UserRole.ADMIN, False, APPROVED)
        assert can_update(UserRole.REQUESTER, True, PENDING, APPROVED)

    def test_non_owner_requester_fails(self):
        assert not can_update(UserRole.REQUESTER, False, PENDING, APPROVED)
        assert not can_update(UserRole.REQUESTER, False, DRAFT)

    def test_approver_needs_a_permitted_status_change(self):
        assert can_update(UserRole.APPROVER, False, PENDING, APPROVED)
        assert not can_update(UserRole.APPROVER, False, PENDING)
        assert not can_update(UserRole.APPROVER, False, DRAFT, PENDING)
