"""
SqlDocumentStore -- SQLAlchemy implementation of the DocumentStore contract.

Responsibility:
    Write side of the store adapter plus the transaction boundary.  Reads
    are delegated to ``DocumentSelector``; folio numbers to
    ``FolioCounterService``.

Architecture position:
    Kernel > Services -- imperative shell.  The only module that turns
    domain DTOs into ORM rows.  Business services depend on the
    ``DocumentStore`` Protocol, not on this class.

Invariants enforced:
    - One transaction per ``transaction()`` block: commit on clean exit,
      rollback on any exception.  Nested blocks join the outer one.
    - UNIQUE(quotation_id) violations surface as DuplicateConversionError;
      UNIQUE(folio) violations as FolioGenerationFailedError.  Both are
      raised from a savepoint so the session stays usable.
    - All timestamps come from the injected Clock.

Failure modes:
    - StoreUnavailableError: OperationalError (lock/statement timeout,
      connection loss), invalidated connections, pool timeouts.
    - DocumentNotFoundError: write against a missing document.

Usage:
    store = SqlDocumentStore(session, clock)
    with store.transaction(timeout_seconds=5):
        doc = store.lock_document(quotation_id)
        store.update_document_status(quotation_id, "converted")
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, Generator, Sequence, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from quote_kernel.domain.calculations import DocumentTotals
from quote_kernel.domain.clock import Clock
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
from quote_kernel.domain.folio import format_folio
from quote_kernel.exceptions import (
    DocumentNotFoundError,
    DuplicateConversionError,
    FolioGenerationFailedError,
    StoreUnavailableError,
)
from quote_kernel.logging_config import get_logger
from quote_kernel.models.document import DocumentItemModel, DocumentModel
from quote_kernel.models.status_history import StatusHistoryModel
from quote_kernel.selectors.document_selector import (
    DocumentSelector,
    document_to_dto,
    history_to_dto,
    item_to_dto,
)
from quote_kernel.services.folio_counter_service import FolioCounterService

logger = get_logger("services.document_store")

T = TypeVar("T")


@contextmanager
def _store_errors(operation: str) -> Generator[None, None, None]:
    """Translate driver-level availability failures into StoreUnavailableError."""
    try:
        yield
    except OperationalError as exc:
        logger.warning(
            "store_unavailable",
            extra={"operation": operation, "detail": str(exc.orig)},
        )
        raise StoreUnavailableError(operation, str(exc.orig)) from exc
    except PoolTimeoutError as exc:
        logger.warning(
            "store_unavailable",
            extra={"operation": operation, "detail": "connection pool timeout"},
        )
        raise StoreUnavailableError(operation, "connection pool timeout") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            logger.warning(
                "store_unavailable",
                extra={"operation": operation, "detail": "connection invalidated"},
            )
            raise StoreUnavailableError(operation, "connection invalidated") from exc
        raise


def _store_call(operation: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    def decorator(fn: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            with _store_errors(operation):
                return fn(self, *args, **kwargs)
        return wrapper
    return decorator


def _violates(detail: str, column: str) -> bool:
    """True if a driver message names the UNIQUE constraint on documents.<column>."""
    return f"uq_documents_{column}" in detail or f"documents.{column}" in detail


def _item_model(draft: DocumentItemDraft, now) -> DocumentItemModel:
    return DocumentItemModel(
        position=draft.position,
        product_code=draft.product_code,
        product_name=draft.product_name,
        unit=draft.unit,
        quantity=draft.quantity,
        unit_price=draft.unit_price,
        tax_rate=draft.tax_rate,
        subtotal=draft.subtotal,
        tax_amount=draft.tax_amount,
        total=draft.total,
        created_at=now,
        updated_at=now,
    )


class SqlDocumentStore:
    """
    DocumentStore over a single SQLAlchemy Session.

    Contract:
        One store per unit of work (request, job, thread).  The store never
        shares its session; concurrent callers each build their own.

    Non-goals:
        - Does NOT enforce business rules.  Transition legality, permissions
          and totals are checked by the services before they call in.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        default_timeout_seconds: float | None = None,
    ):
        self.session = session
        self._clock = clock
        self._default_timeout = default_timeout_seconds
        self._selector = DocumentSelector(session)
        self._counters = FolioCounterService(session)
        self._depth = 0

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(
        self, timeout_seconds: float | None = None,
    ) -> Generator[SqlDocumentStore, None, None]:
        """
        Commit-or-rollback scope for everything done through this store.

        ``timeout_seconds`` bounds each statement on PostgreSQL
        (``SET LOCAL statement_timeout``).  On SQLite the engine's busy
        timeout applies instead.
        """
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            with _store_errors("begin"):
                self._apply_timeout(
                    timeout_seconds if timeout_seconds is not None else self._default_timeout
                )
            yield self
            with _store_errors("commit"):
                self.session.commit()
            logger.debug("store_transaction_committed")
        except Exception:
            self.session.rollback()
            logger.debug("store_transaction_rolled_back")
            raise
        finally:
            self._depth = 0

    def _apply_timeout(self, timeout_seconds: float | None) -> None:
        if timeout_seconds is None:
            return
        if self.session.get_bind().dialect.name == "postgresql":
            millis = max(1, int(timeout_seconds * 1000))
            self.session.execute(text(f"SET LOCAL statement_timeout = {millis}"))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @_store_call("get_document")
    def get_document(self, document_id: str) -> DocumentData | None:
        return self._selector.get_document(document_id)

    @_store_call("lock_document")
    def lock_document(self, document_id: str) -> DocumentData | None:
        return self._selector.lock_document(document_id)

    @_store_call("find_order_by_quotation_id")
    def find_order_by_quotation_id(self, quotation_id: str) -> DocumentData | None:
        return self._selector.find_order_by_quotation_id(quotation_id)

    @_store_call("find_folio_kind")
    def find_folio_kind(self, folio: str) -> DocumentKind | None:
        return self._selector.find_folio_kind(folio)

    @_store_call("find_expirable_quotations")
    def find_expirable_quotations(self, statuses: Sequence[str]) -> list[DocumentData]:
        return self._selector.find_expirable_quotations(statuses)

    @_store_call("get_status_history")
    def get_status_history(
        self, document_id: str, status_type: StatusType | None = None,
    ) -> list[StatusHistoryRecord]:
        return self._selector.get_status_history(document_id, status_type)

    @_store_call("count_by_status")
    def count_by_status(self, kind: DocumentKind) -> dict[str, int]:
        return self._selector.count_by_status(kind)

    @_store_call("get_active_tax_config")
    def get_active_tax_config(self, tax_id: str) -> TaxConfiguration | None:
        return self._selector.get_active_tax_config(tax_id)

    @_store_call("get_default_tax_config")
    def get_default_tax_config(self) -> TaxConfiguration | None:
        return self._selector.get_default_tax_config()

    @_store_call("get_user_role")
    def get_user_role(self, user_id: str) -> UserRole | None:
        return self._selector.get_user_role(user_id)

    @_store_call("get_company_status")
    def get_company_status(self, company_id: str) -> CompanyStatus | None:
        return self._selector.get_company_status(company_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @_store_call("reserve_folio")
    def reserve_folio(self, kind: DocumentKind) -> str:
        """Atomically take the next number for ``kind`` and format it."""
        kind = DocumentKind(kind)
        number = self._counters.next_value(kind.value)
        try:
            folio = format_folio(kind, number)
        except ValueError as exc:
            raise FolioGenerationFailedError(kind.value, None, str(exc)) from exc
        logger.debug("folio_number_reserved", extra={"kind": kind.value, "folio": folio})
        return folio

    def _insert_document(
        self, header: DocumentHeader, items: Sequence[DocumentItemDraft],
    ) -> DocumentModel:
        now = self._clock.now()
        doc = DocumentModel(
            folio=header.folio,
            kind=DocumentKind(header.kind).value,
            status=header.status,
            company_id=header.company_id,
            contact_name=header.contact_name,
            contact_email=header.contact_email,
            contact_phone=header.contact_phone,
            issue_date=header.issue_date,
            validity_days=header.validity_days,
            subtotal=header.subtotal,
            tax_amount=header.tax_amount,
            discount=header.discount,
            total=header.total,
            quotation_id=header.quotation_id,
            created_by=header.created_by,
            notes=header.notes,
            created_at=now,
            updated_at=now,
        )
        doc.items = [_item_model(item, now) for item in items]

        try:
            with self.session.begin_nested():
                self.session.add(doc)
                self.session.flush()
        except IntegrityError as exc:
            detail = str(exc.orig)
            if header.quotation_id is not None and _violates(detail, "quotation_id"):
                logger.info(
                    "duplicate_conversion_rejected",
                    extra={"quotation_id": header.quotation_id, "folio": header.folio},
                )
                raise DuplicateConversionError(header.quotation_id) from exc
            if _violates(detail, "folio"):
                raise FolioGenerationFailedError(
                    DocumentKind(header.kind).value, header.folio, "folio already in use",
                ) from exc
            raise
        return doc

    @_store_call("insert_quotation_with_items")
    def insert_quotation_with_items(
        self, quotation: DocumentHeader, items: Sequence[DocumentItemDraft],
    ) -> DocumentData:
        doc = self._insert_document(quotation, items)
        return document_to_dto(doc)

    @_store_call("insert_order_with_items")
    def insert_order_with_items(
        self, order: DocumentHeader, items: Sequence[DocumentItemDraft],
    ) -> DocumentData:
        doc = self._insert_document(order, items)
        return document_to_dto(doc)

    def _require_model(self, document_id: str) -> DocumentModel:
        doc = self._selector.get_model(document_id)
        if doc is None:
            raise DocumentNotFoundError(document_id)
        return doc

    @_store_call("add_item")
    def add_item(self, document_id: str, item: DocumentItemDraft) -> DocumentItemData:
        doc = self._require_model(document_id)
        model = _item_model(item, self._clock.now())
        doc.items.append(model)
        self.session.flush()
        return item_to_dto(model)

    @_store_call("update_document_totals")
    def update_document_totals(self, document_id: str, totals: DocumentTotals) -> None:
        doc = self._require_model(document_id)
        doc.subtotal = totals.subtotal
        doc.tax_amount = totals.tax_amount
        doc.discount = totals.discount
        doc.total = totals.total
        doc.updated_at = self._clock.now()
        self.session.flush()

    @_store_call("update_document_status")
    def update_document_status(self, document_id: str, new_status: str) -> None:
        doc = self._require_model(document_id)
        doc.status = new_status
        doc.updated_at = self._clock.now()
        self.session.flush()

    @_store_call("append_status_history")
    def append_status_history(self, entry: StatusHistoryDraft) -> StatusHistoryRecord:
        row = StatusHistoryModel(
            document_id=entry.document_id,
            status_type=StatusType(entry.status_type).value,
            old_status=entry.old_status,
            new_status=entry.new_status,
            changed_by=entry.changed_by,
            changed_at=entry.changed_at,
            reason=entry.reason,
            notes=entry.notes,
        )
        self.session.add(row)
        self.session.flush()
        return history_to_dto(row)
