"""
ValidationEngine -- aggregate business-rule checks.

Responsibility:
    Answer "may this happen?" for conversions, status changes and folios,
    and "is this document internally consistent?" for stored documents.
    Every check reports ALL of its failures at once.

Architecture position:
    Kernel > Services -- reads through the DocumentStore, decides with the
    pure state machines and calculation engine.  Never writes.

Invariants enforced:
    - No operation raises on a business-rule failure; each returns a
      ValidationResult.  Store failures (StoreUnavailableError) do
      propagate: an unreachable store is not a rule violation.
    - Warnings never affect validity.

Usage:
    engine = ValidationEngine(store)
    result = engine.validate_pre_conversion(quotation_id, user_id)
    if not result:
        show(result.errors)
"""

from __future__ import annotations

from datetime import datetime

from quote_kernel.domain.calculations import (
    DocumentTotals,
    calculate_document_totals,
    line_item_matches,
    validate_document_totals,
)
from quote_kernel.domain.dtos import (
    CompanyStatus,
    DocumentData,
    DocumentKind,
    UserRole,
    ValidationResult,
)
from quote_kernel.domain.folio import FOLIO_FORMAT_ERRORS, is_valid_folio
from quote_kernel.domain.rounding import ZERO
from quote_kernel.domain.status import (
    QuotationStatus,
    is_quotation_expired,
    validate_order_transition,
    validate_quotation_transition,
)
from quote_kernel.domain.store import DocumentStore
from quote_kernel.logging_config import get_logger

logger = get_logger("services.validation_engine")

EXPIRY_NOT_REACHED_MESSAGE = (
    "Cannot mark quotation as expired - validity period has not ended"
)


class ValidationEngine:
    """Business-rule checks over documents read from a DocumentStore."""

    def __init__(self, store: DocumentStore):
        self._store = store

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _conversion_actor_errors(self, user_id: str) -> list[str]:
        role = self._store.get_user_role(user_id)
        if role is None:
            return ["User not found"]
        if role != UserRole.ADMIN:
            return ["Only admin users can convert quotations to orders"]
        return []

    def validate_conversion_actor(self, user_id: str) -> ValidationResult:
        """May ``user_id`` convert quotations at all?  Admins only."""
        return ValidationResult.from_messages(self._conversion_actor_errors(user_id))

    def validate_quotation_conversion(
        self, quotation_id: str, user_id: str,
    ) -> ValidationResult:
        """
        May ``user_id`` convert ``quotation_id`` into an order?

        Not fail-fast: status, existing order, items, role and company are
        all checked and every failure is reported.  Only a missing or
        non-quotation document stops early, since nothing else applies.
        """
        errors: list[str] = []
        warnings: list[str] = []

        quotation = self._store.get_document(quotation_id)
        if quotation is None:
            return ValidationResult.from_messages(["Quotation not found"])
        if not quotation.is_quotation:
            return ValidationResult.from_messages(
                [f"Document {quotation.folio} is not a quotation"]
            )

        if quotation.status == QuotationStatus.CONVERTED.value:
            errors.append("Quotation has already been converted to an order")
        elif quotation.status != QuotationStatus.APPROVED.value:
            errors.append(
                "Quotation must be approved before it can be converted to an order"
            )

        existing = self._store.find_order_by_quotation_id(quotation.id)
        if existing is not None:
            errors.append(f"Order {existing.folio} already exists for this quotation")

        if not quotation.items:
            errors.append("Quotation must have at least one item to convert to order")

        errors.extend(self._conversion_actor_errors(user_id))

        company_status = (
            self._store.get_company_status(quotation.company_id)
            if quotation.company_id is not None
            else None
        )
        if company_status != CompanyStatus.ACTIVE:
            errors.append("Company must be active to convert quotations to orders")

        result = ValidationResult.from_messages(errors, warnings)
        if not result:
            logger.info(
                "conversion_validation_failed",
                extra={"quotation_id": quotation_id, "errors": list(result.errors)},
            )
        return result

    def validate_pre_conversion(
        self, quotation_id: str, user_id: str,
    ) -> ValidationResult:
        """Conversion rules plus data integrity of the quotation."""
        return self.validate_quotation_conversion(quotation_id, user_id).merge(
            self.validate_document_data_integrity(quotation_id)
        )

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    def validate_order_status_transition(
        self,
        from_status: str,
        to_status: str,
        actor_role: UserRole | str | None,
    ) -> ValidationResult:
        """Role check, then the order state machine.  Skips are warnings."""
        errors: list[str] = []
        if actor_role != UserRole.ADMIN:
            errors.append("Only admin users can change order status")

        transition = validate_order_transition(from_status, to_status)
        if not transition.valid:
            errors.append(transition.reason)

        return ValidationResult.from_messages(errors, transition.warnings)

    def validate_quotation_status_change(
        self,
        document: DocumentData,
        to_status: str,
        now: datetime,
    ) -> ValidationResult:
        """
        State machine check plus the expiry precondition.

        A move to ``expired`` is only allowed once the validity period has
        ended.  Moves to ``converted`` belong to the conversion workflow and
        are rejected here.
        """
        if not document.is_quotation:
            return ValidationResult.from_messages(
                [f"Document {document.folio} is not a quotation"]
            )

        transition = validate_quotation_transition(document.status, to_status)
        if not transition.valid:
            return ValidationResult.from_messages([transition.reason])

        if to_status == QuotationStatus.CONVERTED.value:
            return ValidationResult.from_messages(
                ["Quotations can only be converted through the order conversion workflow"]
            )

        if to_status == QuotationStatus.EXPIRED.value:
            if (
                document.issue_date is None
                or document.validity_days is None
                or not is_quotation_expired(
                    document.issue_date, document.validity_days, now,
                )
            ):
                return ValidationResult.from_messages([EXPIRY_NOT_REACHED_MESSAGE])

        return ValidationResult.success()

    # ------------------------------------------------------------------
    # Folios
    # ------------------------------------------------------------------

    def validate_folio_uniqueness(
        self, folio: str, kind: DocumentKind | str,
    ) -> ValidationResult:
        """Folio is unused and matches the format for ``kind``."""
        kind = DocumentKind(kind)
        errors: list[str] = []

        existing_kind = self._store.find_folio_kind(folio)
        if existing_kind is not None:
            errors.append(f"Folio {folio} already exists for {existing_kind.value}")

        if not is_valid_folio(folio, kind):
            errors.append(FOLIO_FORMAT_ERRORS[kind])

        return ValidationResult.from_messages(errors)

    # ------------------------------------------------------------------
    # Data integrity
    # ------------------------------------------------------------------

    def validate_document_data_integrity(self, document_id: str) -> ValidationResult:
        """
        Required fields, header invariant and per-line arithmetic.

        A header that disagrees with the sum of its items is a warning:
        the per-field checks above it already catch real corruption.
        """
        document = self._store.get_document(document_id)
        if document is None:
            return ValidationResult.from_messages(["Document not found"])

        errors: list[str] = []
        warnings: list[str] = []

        if not document.folio or not document.folio.strip():
            errors.append("Document folio is required")
        if not document.company_id:
            errors.append("Company ID is required")
        if document.issue_date is None:
            errors.append("Issue date is required")

        if document.total <= ZERO:
            errors.append("Document total must be greater than zero")

        header = DocumentTotals(
            subtotal=document.subtotal,
            tax_amount=document.tax_amount,
            total=document.total,
            discount=document.discount,
        )
        if not validate_document_totals(header):
            errors.append(
                "Document total does not equal subtotal plus taxes minus discount"
            )

        if not document.items:
            errors.append("Document must have at least one item")
        else:
            for item in document.items:
                if item.quantity <= 0:
                    errors.append(f'Item "{item.product_name}" has invalid quantity')
                if item.unit_price < 0:
                    errors.append(f'Item "{item.product_name}" has invalid unit price')
                if item.tax_rate < 0:
                    errors.append(f'Item "{item.product_name}" has invalid tax rate')
                arithmetic_checkable = (
                    item.quantity > 0 and item.unit_price >= 0 and item.tax_rate >= 0
                )
                if arithmetic_checkable and not line_item_matches(
                    item.quantity,
                    item.unit_price,
                    item.tax_rate,
                    item.subtotal,
                    item.tax_amount,
                    item.total,
                ):
                    errors.append(f'Item "{item.product_name}" has inconsistent totals')

            calculated = calculate_document_totals(document.items, document.discount)
            if calculated.subtotal != document.subtotal:
                warnings.append("Calculated subtotal does not match document subtotal")
            if calculated.tax_amount != document.tax_amount:
                warnings.append("Calculated taxes do not match document taxes")

        return ValidationResult.from_messages(errors, warnings)
