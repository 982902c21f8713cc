"""
QuotationService -- creating quotations and adding lines.

Responsibility:
    Builds new quotations from caller-supplied product lines, snapshotting
    each line's unit price and tax rate at the moment it is added, and
    keeps the header totals equal to the aggregate of the lines.

Architecture position:
    Kernel > Services -- imperative shell.  Arithmetic comes from the
    calculation engine; numbering from FolioGenerator.

Invariants enforced:
    - New quotations start in ``draft`` with a creation history entry.
    - Header totals are always recomputed from the stored lines, never
      accumulated incrementally.
    - Lines of a converted quotation are never added to.
    - Unit prices are snapshotted at currency precision and tax rates at
      6 places, the scale the store keeps.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence

from quote_kernel.domain.calculations import (
    calculate_document_totals,
    calculate_line_item,
    default_tax_configuration,
)
from quote_kernel.domain.clock import Clock
from quote_kernel.domain.dtos import (
    DocumentData,
    DocumentHeader,
    DocumentItemData,
    DocumentItemDraft,
    DocumentKind,
    LineInput,
    StatusHistoryDraft,
    StatusType,
    TaxConfiguration,
    TaxKind,
)
from quote_kernel.domain.rounding import ZERO, round_quantity, round_rate, round_to_currency
from quote_kernel.domain.status import TERMINAL_QUOTATION_STATUSES, QuotationStatus
from quote_kernel.domain.store import DocumentStore
from quote_kernel.exceptions import DocumentNotFoundError, ValidationFailedError
from quote_kernel.logging_config import LogContext, get_logger
from quote_kernel.services.folio_generator import FolioGenerator

logger = get_logger("services.quotation")

DEFAULT_VALIDITY_DAYS = 30


def build_item_draft(
    line: LineInput, position: int, default_tax_rate: object = None,
) -> DocumentItemDraft:
    """
    Price one line.

    Quantity, unit price and tax rate are brought to their stored scale
    before the line is calculated, so the snapshot recomputes to the same
    amounts after it is read back.  Raises InvalidInputError for negative
    inputs.
    """
    tax_rate = default_tax_rate if line.tax_rate is None else line.tax_rate
    calc = calculate_line_item(
        round_quantity(line.quantity),
        round_to_currency(line.unit_price),
        round_rate(tax_rate),
    )
    return DocumentItemDraft(
        product_code=line.product_code,
        product_name=line.product_name,
        unit=line.unit,
        quantity=calc.quantity,
        unit_price=calc.unit_price,
        tax_rate=calc.tax_rate,
        subtotal=calc.subtotal,
        tax_amount=calc.tax_amount,
        total=calc.total,
        position=position,
    )


class QuotationService:
    """Creates quotations and edits their lines through a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock,
        folio_generator: FolioGenerator | None = None,
        default_validity_days: int = DEFAULT_VALIDITY_DAYS,
        timeout_seconds: float | None = None,
        fallback_tax: TaxConfiguration | None = None,
    ):
        self._store = store
        self._clock = clock
        self._folios = folio_generator or FolioGenerator(store)
        self._default_validity_days = default_validity_days
        self._timeout = timeout_seconds
        self._fallback_tax = fallback_tax or default_tax_configuration()

    def _default_tax_rate(self) -> Decimal:
        # Store default (active, percentage) first, configured fallback second.
        tax = self._store.get_default_tax_config()
        if tax is None or tax.kind != TaxKind.PERCENTAGE:
            tax = self._fallback_tax
        return tax.rate

    def _draft_lines(
        self, lines: Sequence[LineInput], first_position: int = 1,
    ) -> list[DocumentItemDraft]:
        default_rate = (
            self._default_tax_rate() if any(line.tax_rate is None for line in lines) else None
        )
        return [
            build_item_draft(line, position, default_rate)
            for position, line in enumerate(lines, first_position)
        ]

    def create_quotation(
        self,
        company_id: str,
        user_id: str,
        lines: Sequence[LineInput],
        *,
        issue_date: date | None = None,
        validity_days: int | None = None,
        discount: object = ZERO,
        contact_name: str | None = None,
        contact_email: str | None = None,
        contact_phone: str | None = None,
        notes: str | None = None,
    ) -> DocumentData:
        """
        Store a new ``draft`` quotation with its priced lines.

        Raises:
            ValidationFailedError: Unknown company or user, bad validity,
                or a discount larger than the document.
            InvalidInputError: A line has a negative quantity, price or rate.
        """
        validity = self._default_validity_days if validity_days is None else validity_days

        with LogContext.bind(actor_id=str(user_id)):
            with self._store.transaction(self._timeout) as store:
                drafts = self._draft_lines(lines)
                totals = calculate_document_totals(drafts, discount)
                errors: list[str] = []
                if store.get_company_status(company_id) is None:
                    errors.append("Company not found")
                if store.get_user_role(user_id) is None:
                    errors.append("User not found")
                if validity < 1:
                    errors.append("Validity days must be at least 1")
                if totals.total < ZERO:
                    errors.append("Discount cannot exceed the document amount")
                if errors:
                    raise ValidationFailedError(errors)

                now = self._clock.now()
                folio = self._folios.generate(DocumentKind.QUOTATION)
                quotation = store.insert_quotation_with_items(
                    DocumentHeader(
                        folio=folio,
                        kind=DocumentKind.QUOTATION,
                        status=QuotationStatus.DRAFT.value,
                        company_id=company_id,
                        issue_date=issue_date or now.date(),
                        subtotal=totals.subtotal,
                        tax_amount=totals.tax_amount,
                        discount=totals.discount,
                        total=totals.total,
                        created_by=user_id,
                        contact_name=contact_name,
                        contact_email=contact_email,
                        contact_phone=contact_phone,
                        validity_days=validity,
                        notes=notes,
                    ),
                    drafts,
                )
                store.append_status_history(
                    StatusHistoryDraft(
                        document_id=quotation.id,
                        status_type=StatusType.QUOTATION_STATUS,
                        old_status=None,
                        new_status=QuotationStatus.DRAFT.value,
                        changed_by=user_id,
                        changed_at=now,
                        reason="Quotation created",
                    )
                )

        logger.info(
            "quotation_created",
            extra={
                "document_id": quotation.id,
                "folio": quotation.folio,
                "item_count": len(drafts),
                "total": str(quotation.total),
            },
        )
        return quotation

    def add_item(
        self, quotation_id: str, line: LineInput, user_id: str,
    ) -> DocumentItemData:
        """Append a priced line and recompute the header totals."""
        with LogContext.bind(document_id=str(quotation_id), actor_id=str(user_id)):
            with self._store.transaction(self._timeout) as store:
                quotation = store.lock_document(quotation_id)
                if quotation is None:
                    raise DocumentNotFoundError(str(quotation_id))
                if not quotation.is_quotation:
                    raise ValidationFailedError(
                        [f"Document {quotation.folio} is not a quotation"]
                    )
                if QuotationStatus(quotation.status) in TERMINAL_QUOTATION_STATUSES:
                    raise ValidationFailedError(
                        [f"Cannot modify items of {quotation.status} quotations"]
                    )

                position = max((i.position for i in quotation.items), default=0) + 1
                item = store.add_item(quotation.id, self._draft_lines([line], position)[0])
                totals = calculate_document_totals(
                    list(quotation.items) + [item], quotation.discount,
                )
                store.update_document_totals(quotation.id, totals)

            logger.info(
                "quotation_item_added",
                extra={"position": position, "new_total": str(totals.total)},
            )
            return item
