"""
Pure domain layer.

This package contains value objects, state machines and monetary math
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (the current time is always passed in)
- I/O

``store.py`` declares the store adapter Protocol; implementations live
outside the domain.
"""

from quote_kernel.domain.calculations import (
    DocumentTotals,
    LineItemCalculation,
    ProductPricing,
    calculate_base_price,
    calculate_document_totals,
    calculate_line_item,
    calculate_line_items,
    calculate_product_pricing,
    calculate_public_price,
    calculate_tax_amount,
    default_tax_configuration,
    validate_document_totals,
)
from quote_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from quote_kernel.domain.dtos import (
    CompanyStatus,
    DocumentData,
    DocumentHeader,
    DocumentItemData,
    DocumentItemDraft,
    DocumentKind,
    LineInput,
    StatusHistoryDraft,
    StatusHistoryRecord,
    StatusType,
    TaxConfiguration,
    TaxKind,
    UserRole,
    ValidationResult,
)
from quote_kernel.domain.folio import format_folio, is_valid_folio
from quote_kernel.domain.rounding import round_quantity, round_rate, round_to_currency, to_decimal
from quote_kernel.domain.status import (
    OrderStatus,
    QuotationStatus,
    StatusTransition,
    TransitionRejection,
    can_cancel_order,
    is_quotation_expired,
    validate_order_transition,
    validate_quotation_transition,
    valid_next_order_statuses,
    valid_next_quotation_statuses,
)
from quote_kernel.domain.store import DocumentStore

__all__ = [
    # Rounding
    "round_to_currency",
    "round_quantity",
    "round_rate",
    "to_decimal",
    # Calculations
    "DocumentTotals",
    "LineItemCalculation",
    "ProductPricing",
    "calculate_base_price",
    "calculate_document_totals",
    "calculate_line_item",
    "calculate_line_items",
    "calculate_product_pricing",
    "calculate_public_price",
    "calculate_tax_amount",
    "default_tax_configuration",
    "validate_document_totals",
    # Status machines
    "OrderStatus",
    "QuotationStatus",
    "StatusTransition",
    "TransitionRejection",
    "can_cancel_order",
    "is_quotation_expired",
    "validate_order_transition",
    "validate_quotation_transition",
    "valid_next_order_statuses",
    "valid_next_quotation_statuses",
    # Folio
    "format_folio",
    "is_valid_folio",
    # DTOs
    "CompanyStatus",
    "DocumentData",
    "DocumentHeader",
    "DocumentItemData",
    "DocumentItemDraft",
    "DocumentKind",
    "LineInput",
    "StatusHistoryDraft",
    "StatusHistoryRecord",
    "StatusType",
    "TaxConfiguration",
    "TaxKind",
    "UserRole",
    "ValidationResult",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Store contract
    "DocumentStore",
]
