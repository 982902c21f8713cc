"""
DocumentStore -- the store adapter contract.

Responsibility:
    The only way services reach persistence.  Business logic depends on
    this Protocol, never on an ORM query, so the lifecycle rules can be
    exercised against any transactional store that upholds the contract.

Architecture position:
    Kernel > Domain -- interface only, no implementation.  The SQLAlchemy
    implementation lives in ``services/document_store.py``.

Contract:
    - ``transaction()`` is the single transaction boundary.  Everything done
      through the store inside the ``with`` block commits together on clean
      exit and rolls back together on exception.  Re-entrant: a nested
      ``transaction()`` joins the outer one.
    - ``lock_document`` serializes writers on one document for the rest of
      the transaction.
    - ``insert_order_with_items`` is protected by a uniqueness guarantee on
      ``quotation_id``; a second order for the same quotation raises
      DuplicateConversionError.
    - ``reserve_folio`` is an atomic check-and-reserve against a counter
      owned by the store.  Reservations roll back with the transaction.
    - Timeouts and lost connections raise StoreUnavailableError.  The
      outcome of the interrupted call is unknown.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol, Sequence

from quote_kernel.domain.calculations import DocumentTotals
from quote_kernel.domain.dtos import (
    CompanyStatus,
    DocumentData,
    DocumentHeader,
    DocumentItemData,
    DocumentItemDraft,
    DocumentKind,
    StatusHistoryDraft,
    StatusHistoryRecord,
    StatusType,
    TaxConfiguration,
    UserRole,
)


class DocumentStore(Protocol):
    # Transaction boundary

    def transaction(
        self, timeout_seconds: float | None = None,
    ) -> AbstractContextManager[DocumentStore]: ...

    # Reads

    def get_document(self, document_id: str) -> DocumentData | None: ...

    def lock_document(self, document_id: str) -> DocumentData | None: ...

    def find_order_by_quotation_id(self, quotation_id: str) -> DocumentData | None: ...

    def find_folio_kind(self, folio: str) -> DocumentKind | None: ...

    def find_expirable_quotations(
        self, statuses: Sequence[str],
    ) -> list[DocumentData]: ...

    def get_status_history(
        self, document_id: str, status_type: StatusType | None = None,
    ) -> list[StatusHistoryRecord]: ...

    def count_by_status(self, kind: DocumentKind) -> dict[str, int]: ...

    def get_active_tax_config(self, tax_id: str) -> TaxConfiguration | None: ...

    def get_default_tax_config(self) -> TaxConfiguration | None: ...

    def get_user_role(self, user_id: str) -> UserRole | None: ...

    def get_company_status(self, company_id: str) -> CompanyStatus | None: ...

    # Writes

    def reserve_folio(self, kind: DocumentKind) -> str: ...

    def insert_quotation_with_items(
        self, quotation: DocumentHeader, items: Sequence[DocumentItemDraft],
    ) -> DocumentData: ...

    def insert_order_with_items(
        self, order: DocumentHeader, items: Sequence[DocumentItemDraft],
    ) -> DocumentData: ...

    def add_item(self, document_id: str, item: DocumentItemDraft) -> DocumentItemData: ...

    def update_document_totals(
        self, document_id: str, totals: DocumentTotals,
    ) -> None: ...

    def update_document_status(self, document_id: str, new_status: str) -> None: ...

    def append_status_history(self, entry: StatusHistoryDraft) -> StatusHistoryRecord: ...
