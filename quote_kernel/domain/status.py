"""
Document status state machines (``quote_kernel.domain.status``).

Responsibility
--------------
Legal-transition tables and transition validation for quotations and
orders, plus the auto-expiry predicate for quotations.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.  The current time is always
passed in by the caller (from an injected Clock).

Invariants enforced
-------------------
* ``QUOTATION_TRANSITIONS`` defines the only valid quotation transitions.
  ``converted`` has no outgoing edges.
* Orders move forward through ``ORDER_STAGE_SEQUENCE`` or to
  ``cancelled``.  ``delivered`` and ``cancelled`` have no outgoing edges.
  Backward moves are illegal.  Skipping a stage is legal but advisory
  warnings are attached to the result.
* Same-status "transitions" are always rejected.

Failure modes
-------------
The ``validate_*`` functions never raise; they return a StatusTransition.
``require_*`` helpers raise IllegalTransitionError for callers that want
an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum

from quote_kernel.exceptions import IllegalTransitionError


# =========================================================================
# Quotation lifecycle
# =========================================================================


class QuotationStatus(str, Enum):
    DRAFT = "draft"
    GENERATED = "generated"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"


QUOTATION_TRANSITIONS: dict[QuotationStatus, frozenset[QuotationStatus]] = {
    QuotationStatus.DRAFT: frozenset({QuotationStatus.GENERATED}),
    QuotationStatus.GENERATED: frozenset({
        QuotationStatus.UNDER_REVIEW,
        QuotationStatus.EXPIRED,
    }),
    QuotationStatus.UNDER_REVIEW: frozenset({
        QuotationStatus.APPROVED,
        QuotationStatus.REJECTED,
        QuotationStatus.EXPIRED,
    }),
    QuotationStatus.APPROVED: frozenset({
        QuotationStatus.CONVERTED,
        QuotationStatus.EXPIRED,
    }),
    # Regeneration after rejection or expiry
    QuotationStatus.REJECTED: frozenset({QuotationStatus.GENERATED}),
    QuotationStatus.EXPIRED: frozenset({QuotationStatus.GENERATED}),
    QuotationStatus.CONVERTED: frozenset(),
}

TERMINAL_QUOTATION_STATUSES: frozenset[QuotationStatus] = frozenset({
    QuotationStatus.CONVERTED,
})

# Statuses the auto-expiry sweep may move to EXPIRED.
EXPIRABLE_QUOTATION_STATUSES: frozenset[QuotationStatus] = frozenset({
    QuotationStatus.GENERATED,
    QuotationStatus.UNDER_REVIEW,
})


# =========================================================================
# Order lifecycle
# =========================================================================


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


ORDER_STAGE_SEQUENCE: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.IN_PROGRESS,
    OrderStatus.READY,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.CONFIRMED,
        OrderStatus.IN_PROGRESS,
        OrderStatus.READY,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.CONFIRMED: frozenset({
        OrderStatus.IN_PROGRESS,
        OrderStatus.READY,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.IN_PROGRESS: frozenset({
        OrderStatus.READY,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.READY: frozenset({
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.SHIPPED: frozenset({
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
})


# =========================================================================
# Transition results
# =========================================================================


class TransitionRejection(str, Enum):
    """Why a transition was rejected.  Lets callers word feedback precisely."""

    SAME_STATUS = "same_status"
    TERMINAL_STATE = "terminal_state"
    ILLEGAL_TRANSITION = "illegal_transition"
    UNKNOWN_STATUS = "unknown_status"


SAME_STATUS_MESSAGE = "Status is already set to this value"


@dataclass(frozen=True)
class StatusTransition:
    """
    Outcome of a structural transition check.

    ``rejection`` and ``reason`` are None when ``valid`` is True.
    ``warnings`` carries advisories that never affect validity.
    """

    from_status: str
    to_status: str
    valid: bool
    reason: str | None = None
    rejection: TransitionRejection | None = None
    warnings: tuple[str, ...] = ()

    @classmethod
    def allowed(
        cls, from_status: str, to_status: str, warnings: tuple[str, ...] = ()
    ) -> StatusTransition:
        return cls(from_status, to_status, True, warnings=warnings)

    @classmethod
    def rejected(
        cls,
        from_status: str,
        to_status: str,
        rejection: TransitionRejection,
        reason: str,
    ) -> StatusTransition:
        return cls(from_status, to_status, False, reason, rejection)

    def raise_if_invalid(self) -> None:
        if not self.valid:
            raise IllegalTransitionError(
                self.from_status, self.to_status, self.reason or "Illegal transition"
            )


def _value(status: Enum | str) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def parse_quotation_status(value: QuotationStatus | str) -> QuotationStatus | None:
    """Return the enum member for ``value``, or None if it is not a quotation status."""
    try:
        return QuotationStatus(value)
    except ValueError:
        return None


def parse_order_status(value: OrderStatus | str) -> OrderStatus | None:
    try:
        return OrderStatus(value)
    except ValueError:
        return None


# =========================================================================
# Quotation validation
# =========================================================================


def validate_quotation_transition(
    from_status: QuotationStatus | str,
    to_status: QuotationStatus | str,
) -> StatusTransition:
    """
    Check a quotation status change against ``QUOTATION_TRANSITIONS``.

    Order of checks: unknown status, same status, terminal state, table.
    """
    raw_from, raw_to = _value(from_status), _value(to_status)
    current = parse_quotation_status(raw_from)
    target = parse_quotation_status(raw_to)

    if current is None or target is None:
        unknown = raw_from if current is None else raw_to
        return StatusTransition.rejected(
            raw_from, raw_to,
            TransitionRejection.UNKNOWN_STATUS,
            f"Unknown quotation status: {unknown}",
        )

    if current == target:
        return StatusTransition.rejected(
            raw_from, raw_to, TransitionRejection.SAME_STATUS, SAME_STATUS_MESSAGE,
        )

    if current in TERMINAL_QUOTATION_STATUSES:
        return StatusTransition.rejected(
            raw_from, raw_to,
            TransitionRejection.TERMINAL_STATE,
            f"Cannot change status of {current.value} quotations",
        )

    if target not in QUOTATION_TRANSITIONS[current]:
        return StatusTransition.rejected(
            raw_from, raw_to,
            TransitionRejection.ILLEGAL_TRANSITION,
            f"Cannot transition from {current.value} to {target.value}",
        )

    return StatusTransition.allowed(raw_from, raw_to)


def require_quotation_transition(
    from_status: QuotationStatus | str,
    to_status: QuotationStatus | str,
) -> None:
    """Raise IllegalTransitionError unless the transition is legal."""
    validate_quotation_transition(from_status, to_status).raise_if_invalid()


def valid_next_quotation_statuses(
    status: QuotationStatus | str,
) -> tuple[QuotationStatus, ...]:
    """Reachable statuses from ``status``, in declaration order."""
    current = parse_quotation_status(_value(status))
    if current is None:
        return ()
    allowed = QUOTATION_TRANSITIONS[current]
    return tuple(s for s in QuotationStatus if s in allowed)


def quotation_expiry_moment(issue_date: date, validity_days: int) -> datetime:
    """The instant a quotation's validity period ends (UTC)."""
    start = datetime.combine(issue_date, time.min, tzinfo=timezone.utc)
    return start + timedelta(days=validity_days)


def is_quotation_expired(
    issue_date: date,
    validity_days: int,
    now: datetime,
) -> bool:
    """True when ``now`` is strictly after issue_date + validity_days."""
    return now > quotation_expiry_moment(issue_date, validity_days)


# =========================================================================
# Order validation
# =========================================================================


def skipped_order_stages(
    from_status: OrderStatus | str,
    to_status: OrderStatus | str,
) -> tuple[OrderStatus, ...]:
    """
    Intermediate stages jumped over by a forward move.

    Empty for adjacent moves, backward moves and anything involving
    ``cancelled``.
    """
    current = parse_order_status(_value(from_status))
    target = parse_order_status(_value(to_status))
    if current not in ORDER_STAGE_SEQUENCE or target not in ORDER_STAGE_SEQUENCE:
        return ()
    start = ORDER_STAGE_SEQUENCE.index(current)
    end = ORDER_STAGE_SEQUENCE.index(target)
    if end <= start + 1:
        return ()
    return ORDER_STAGE_SEQUENCE[start + 1:end]


def _skip_warnings(current: OrderStatus, target: OrderStatus) -> tuple[str, ...]:
    warnings: list[str] = []
    if target == OrderStatus.SHIPPED and current != OrderStatus.READY:
        warnings.append("Orders should typically be marked as ready before shipping")
    elif target == OrderStatus.DELIVERED and current != OrderStatus.SHIPPED:
        warnings.append(
            "Orders should typically be shipped before marking as delivered"
        )
    else:
        skipped = skipped_order_stages(current, target)
        if skipped:
            warnings.append(
                "Order skips intermediate stages: "
                + ", ".join(s.value for s in skipped)
            )
    return tuple(warnings)


def validate_order_transition(
    from_status: OrderStatus | str,
    to_status: OrderStatus | str,
) -> StatusTransition:
    """
    Structural check of an order status change.

    Role gating lives in the validation engine; this function only
    applies the table.  Order of checks: unknown status, same status,
    terminal state, table.
    """
    raw_from, raw_to = _value(from_status), _value(to_status)
    current = parse_order_status(raw_from)
    target = parse_order_status(raw_to)

    if current is None or target is None:
        unknown = raw_from if current is None else raw_to
        return StatusTransition.rejected(
            raw_from, raw_to,
            TransitionRejection.UNKNOWN_STATUS,
            f"Unknown order status: {unknown}",
        )

    if current == target:
        return StatusTransition.rejected(
            raw_from, raw_to, TransitionRejection.SAME_STATUS, SAME_STATUS_MESSAGE,
        )

    if current in TERMINAL_ORDER_STATUSES:
        return StatusTransition.rejected(
            raw_from, raw_to,
            TransitionRejection.TERMINAL_STATE,
            f"Cannot change status of {current.value} orders",
        )

    if target not in ORDER_TRANSITIONS[current]:
        return StatusTransition.rejected(
            raw_from, raw_to,
            TransitionRejection.ILLEGAL_TRANSITION,
            f"Cannot transition from {current.value} to {target.value}",
        )

    return StatusTransition.allowed(raw_from, raw_to, _skip_warnings(current, target))


def valid_next_order_statuses(
    status: OrderStatus | str,
) -> tuple[OrderStatus, ...]:
    current = parse_order_status(_value(status))
    if current is None:
        return ()
    allowed = ORDER_TRANSITIONS[current]
    return tuple(s for s in OrderStatus if s in allowed)


def can_cancel_order(status: OrderStatus | str) -> bool:
    """Orders can be cancelled from any non-terminal status."""
    current = parse_order_status(_value(status))
    return current is not None and current not in TERMINAL_ORDER_STATUSES
