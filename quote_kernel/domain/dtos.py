"""
Domain Data Transfer Objects.

Responsibility:
    Immutable value types that cross the boundary between pure domain logic,
    services and the store adapter.  No ORM objects leak past the store
    adapter; services and the validation engine only see these DTOs.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - All DTOs are frozen dataclasses.
    - Monetary fields are Decimal; no floats.
    - ValidationResult always carries tuples for errors and warnings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable


class DocumentKind(str, Enum):
    """Tag that disambiguates quotations from orders."""

    QUOTATION = "quotation"
    ORDER = "order"


class UserRole(str, Enum):
    ADMIN = "admin"
    CLIENT = "client"


class CompanyStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class TaxKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class StatusType(str, Enum):
    """Which state machine a history entry belongs to."""

    QUOTATION_STATUS = "quotation_status"
    ORDER_STATUS = "order_status"


@dataclass(frozen=True)
class TaxConfiguration:
    """
    Read-only tax configuration.

    ``rate`` is a fraction (0.16 for 16%) and only meaningful for
    PERCENTAGE; ``amount`` is only meaningful for FIXED_AMOUNT.
    """

    id: str
    name: str
    kind: TaxKind
    rate: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")
    is_default: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class LineInput:
    """
    A product line as supplied by a caller, before calculation.

    ``tax_rate`` None means the default tax configuration applies.
    """

    product_code: str
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal | None = None
    unit: str = "pieza"


@dataclass(frozen=True)
class DocumentItemDraft:
    """A calculated line ready to be written.  No id yet."""

    product_code: str
    product_name: str
    unit: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    position: int


@dataclass(frozen=True)
class DocumentItemData:
    """A stored line item."""

    id: str
    document_id: str
    product_code: str
    product_name: str
    unit: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    position: int

    def to_draft(self) -> DocumentItemDraft:
        """Snapshot this item for copying into another document."""
        return DocumentItemDraft(
            product_code=self.product_code,
            product_name=self.product_name,
            unit=self.unit,
            quantity=self.quantity,
            unit_price=self.unit_price,
            tax_rate=self.tax_rate,
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            total=self.total,
            position=self.position,
        )


@dataclass(frozen=True)
class DocumentHeader:
    """
    Fields shared by every new document.

    Used for inserts of both quotations and orders.  ``quotation_id`` is
    only set on orders; ``validity_days`` only on quotations.
    """

    folio: str
    kind: DocumentKind
    status: str
    company_id: str
    issue_date: date
    subtotal: Decimal
    tax_amount: Decimal
    discount: Decimal
    total: Decimal
    created_by: str
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    validity_days: int | None = None
    quotation_id: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class DocumentData:
    """A stored document with its items, as read from the store."""

    id: str
    folio: str
    kind: DocumentKind
    status: str
    company_id: str | None
    issue_date: date | None
    subtotal: Decimal
    tax_amount: Decimal
    discount: Decimal
    total: Decimal
    created_by: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    validity_days: int | None = None
    quotation_id: str | None = None
    notes: str | None = None
    items: tuple[DocumentItemData, ...] = field(default_factory=tuple)

    @property
    def is_quotation(self) -> bool:
        return self.kind == DocumentKind.QUOTATION

    @property
    def is_order(self) -> bool:
        return self.kind == DocumentKind.ORDER


@dataclass(frozen=True)
class StatusHistoryDraft:
    """A history entry to append.  ``old_status`` is None for creation."""

    document_id: str
    status_type: StatusType
    old_status: str | None
    new_status: str
    changed_by: str | None
    changed_at: datetime
    reason: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class StatusHistoryRecord:
    id: str
    document_id: str
    status_type: StatusType
    old_status: str | None
    new_status: str
    changed_by: str | None
    changed_at: datetime
    reason: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """
    Aggregate outcome of a business-rule check.

    Contract:
        ``valid`` is True only when there are no errors.  Warnings never
        affect validity.

    Guarantees:
        - Immutable (frozen dataclass)
        - errors and warnings are always tuples (never None)
        - bool(result) == result.valid
    """

    valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @classmethod
    def success(cls, warnings: Iterable[str] = ()) -> ValidationResult:
        return cls(valid=True, errors=(), warnings=tuple(warnings))

    @classmethod
    def from_messages(
        cls, errors: Iterable[str], warnings: Iterable[str] = ()
    ) -> ValidationResult:
        """Build a result whose validity is derived from the errors."""
        errors = tuple(errors)
        return cls(valid=not errors, errors=errors, warnings=tuple(warnings))

    def merge(self, other: ValidationResult) -> ValidationResult:
        """Union of two results; valid only if both are."""
        return ValidationResult(
            valid=self.valid and other.valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )

    def __bool__(self) -> bool:
        return self.valid
