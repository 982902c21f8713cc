"""
Tests for the quotation and order state machines.

Verifies:
- Every legal quotation edge is accepted, everything else rejected
- Rejection kinds and their exact messages
- Expiry predicate boundaries
- Order forward moves, cancellation, terminal states and skip warnings
"""

from datetime import date, datetime, timedelta, timezone
from itertools import product

import pytest

from quote_kernel.domain.status import (
    ORDER_TRANSITIONS,
    QUOTATION_TRANSITIONS,
    SAME_STATUS_MESSAGE,
    OrderStatus,
    QuotationStatus,
    TransitionRejection,
    can_cancel_order,
    is_quotation_expired,
    quotation_expiry_moment,
    require_quotation_transition,
    skipped_order_stages,
    valid_next_order_statuses,
    valid_next_quotation_statuses,
    validate_order_transition,
    validate_quotation_transition,
)
from quote_kernel.exceptions import IllegalTransitionError


LEGAL_QUOTATION_EDGES = {
    ("draft", "generated"),
    ("generated", "under_review"),
    ("generated", "expired"),
    ("under_review", "approved"),
    ("under_review", "rejected"),
    ("under_review", "expired"),
    ("approved", "converted"),
    ("approved", "expired"),
    ("rejected", "generated"),
    ("expired", "generated"),
}


class TestQuotationTransitions:

    @pytest.mark.parametrize(
        "from_status, to_status",
        list(product([s.value for s in QuotationStatus], repeat=2)),
    )
    def test_table_is_exactly_the_legal_edges(self, from_status, to_status):
        result = validate_quotation_transition(from_status, to_status)
        assert result.valid == ((from_status, to_status) in LEGAL_QUOTATION_EDGES)

    def test_same_status_rejected(self):
        result = validate_quotation_transition("approved", "approved")
        assert not result.valid
        assert result.rejection == TransitionRejection.SAME_STATUS
        assert result.reason == SAME_STATUS_MESSAGE == "Status is already set to this value"

    def test_converted_is_terminal(self):
        result = validate_quotation_transition("converted", "generated")
        assert result.rejection == TransitionRejection.TERMINAL_STATE
        assert result.reason == "Cannot change status of converted quotations"

    def test_illegal_edge_message(self):
        result = validate_quotation_transition("draft", "approved")
        assert result.rejection == TransitionRejection.ILLEGAL_TRANSITION
        assert result.reason == "Cannot transition from draft to approved"

    def test_unknown_status(self):
        result = validate_quotation_transition("draft", "Approved")
        assert result.rejection == TransitionRejection.UNKNOWN_STATUS
        assert "Approved" in result.reason

    def test_enum_and_string_inputs_agree(self):
        assert validate_quotation_transition(
            QuotationStatus.UNDER_REVIEW, QuotationStatus.APPROVED,
        ).valid
        assert validate_quotation_transition("under_review", "approved").valid

    def test_require_raises_typed_error(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            require_quotation_transition("draft", "converted")
        assert exc_info.value.code == "ILLEGAL_TRANSITION"
        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "converted"

    def test_valid_next_statuses(self):
        assert valid_next_quotation_statuses("under_review") == (
            QuotationStatus.APPROVED,
            QuotationStatus.REJECTED,
            QuotationStatus.EXPIRED,
        )
        assert valid_next_quotation_statuses("converted") == ()
        assert valid_next_quotation_statuses("bogus") == ()

    def test_every_status_has_a_row(self):
        assert set(QUOTATION_TRANSITIONS) == set(QuotationStatus)


class TestQuotationExpiry:

    ISSUED = date(2024, 1, 1)

    def test_expiry_moment_is_midnight_utc(self):
        assert quotation_expiry_moment(self.ISSUED, 30) == datetime(
            2024, 1, 31, tzinfo=timezone.utc,
        )

    def test_not_expired_at_exact_boundary(self):
        boundary = quotation_expiry_moment(self.ISSUED, 30)
        assert not is_quotation_expired(self.ISSUED, 30, boundary)

    def test_expired_just_after_boundary(self):
        boundary = quotation_expiry_moment(self.ISSUED, 30)
        assert is_quotation_expired(self.ISSUED, 30, boundary + timedelta(microseconds=1))

    def test_zero_validity(self):
        assert is_quotation_expired(
            self.ISSUED, 0, datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc),
        )


class TestOrderTransitions:

    def test_forward_adjacent_moves_have_no_warnings(self):
        result = validate_order_transition("pending", "confirmed")
        assert result.valid
        assert result.warnings == ()

    def test_backward_move_rejected(self):
        result = validate_order_transition("shipped", "ready")
        assert not result.valid
        assert result.rejection == TransitionRejection.ILLEGAL_TRANSITION
        assert result.reason == "Cannot transition from shipped to ready"

    @pytest.mark.parametrize("terminal", ["delivered", "cancelled"])
    def test_terminal_states(self, terminal):
        result = validate_order_transition(terminal, "pending")
        assert result.rejection == TransitionRejection.TERMINAL_STATE
        assert result.reason == f"Cannot change status of {terminal} orders"

    def test_same_status_rejected(self):
        result = validate_order_transition("ready", "ready")
        assert result.reason == SAME_STATUS_MESSAGE

    @pytest.mark.parametrize(
        "status", ["pending", "confirmed", "in_progress", "ready", "shipped"],
    )
    def test_cancel_from_any_non_terminal(self, status):
        assert validate_order_transition(status, "cancelled").valid
        assert can_cancel_order(status)

    def test_cannot_cancel_terminal(self):
        assert not can_cancel_order("delivered")
        assert not can_cancel_order("cancelled")
        assert not can_cancel_order("unknown")

    def test_ship_without_ready_warns(self):
        result = validate_order_transition("in_progress", "shipped")
        assert result.valid
        assert result.warnings == (
            "Orders should typically be marked as ready before shipping",
        )

    def test_deliver_without_shipping_warns(self):
        result = validate_order_transition("ready", "delivered")
        assert result.valid
        assert result.warnings == (
            "Orders should typically be shipped before marking as delivered",
        )

    def test_other_skips_warn_with_stage_names(self):
        result = validate_order_transition("pending", "ready")
        assert result.valid
        assert result.warnings == (
            "Order skips intermediate stages: confirmed, in_progress",
        )

    def test_skipped_stages(self):
        assert skipped_order_stages("pending", "ready") == (
            OrderStatus.CONFIRMED,
            OrderStatus.IN_PROGRESS,
        )
        assert skipped_order_stages("pending", "confirmed") == ()
        assert skipped_order_stages("ready", "cancelled") == ()

    def test_valid_next_statuses(self):
        assert valid_next_order_statuses("shipped") == (
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
        )
        assert valid_next_order_statuses("delivered") == ()

    def test_every_status_has_a_row(self):
        assert set(ORDER_TRANSITIONS) == set(OrderStatus)
