"""
DocumentSelector -- read side of the SQL document store.

Responsibility:
    Queries over documents, line items, status history and reference data,
    returned as domain DTOs.

Architecture position:
    Kernel > Selectors.  Used by ``services/document_store.py``; never
    imported by domain code.

Invariants enforced:
    - Read-only.  ``lock_document`` takes a row lock but writes nothing.
    - Status history is returned newest first (changed_at DESC).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select

from quote_kernel.domain.dtos import (
    CompanyStatus,
    DocumentData,
    DocumentItemData,
    DocumentKind,
    StatusHistoryRecord,
    StatusType,
    TaxConfiguration,
    TaxKind,
    UserRole,
)
from quote_kernel.domain.status import OrderStatus, QuotationStatus
from quote_kernel.models.document import DocumentItemModel, DocumentModel
from quote_kernel.models.reference import CompanyModel, TaxConfigurationModel, UserModel
from quote_kernel.models.status_history import StatusHistoryModel
from quote_kernel.selectors.base import BaseSelector


def _as_uuid(value: str | UUID) -> UUID | None:
    """Parse an identifier; None for anything that is not a UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; all stored times are UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _str_or_none(value: UUID | None) -> str | None:
    return str(value) if value is not None else None


def item_to_dto(item: DocumentItemModel) -> DocumentItemData:
    return DocumentItemData(
        id=str(item.id),
        document_id=str(item.document_id),
        product_code=item.product_code,
        product_name=item.product_name,
        unit=item.unit,
        quantity=item.quantity,
        unit_price=item.unit_price,
        tax_rate=item.tax_rate,
        subtotal=item.subtotal,
        tax_amount=item.tax_amount,
        total=item.total,
        position=item.position,
    )


def document_to_dto(doc: DocumentModel, with_items: bool = True) -> DocumentData:
    return DocumentData(
        id=str(doc.id),
        folio=doc.folio,
        kind=DocumentKind(doc.kind),
        status=doc.status,
        company_id=_str_or_none(doc.company_id),
        issue_date=doc.issue_date,
        subtotal=doc.subtotal,
        tax_amount=doc.tax_amount,
        discount=doc.discount,
        total=doc.total,
        created_by=_str_or_none(doc.created_by),
        created_at=_aware(doc.created_at),
        updated_at=_aware(doc.updated_at),
        contact_name=doc.contact_name,
        contact_email=doc.contact_email,
        contact_phone=doc.contact_phone,
        validity_days=doc.validity_days,
        quotation_id=_str_or_none(doc.quotation_id),
        notes=doc.notes,
        items=tuple(item_to_dto(i) for i in doc.items) if with_items else (),
    )


def history_to_dto(row: StatusHistoryModel) -> StatusHistoryRecord:
    return StatusHistoryRecord(
        id=str(row.id),
        document_id=str(row.document_id),
        status_type=StatusType(row.status_type),
        old_status=row.old_status,
        new_status=row.new_status,
        changed_by=_str_or_none(row.changed_by),
        changed_at=_aware(row.changed_at),
        reason=row.reason,
        notes=row.notes,
    )


class DocumentSelector(BaseSelector[DocumentModel]):
    """
    Read-only queries for the document store.

    Identifiers arrive as strings from callers.  A string that is not a
    UUID cannot name a stored row, so lookups by it return None.
    """

    def get_model(self, document_id: str, for_update: bool = False) -> DocumentModel | None:
        """ORM row for in-store writes.  Not for use outside the store adapter."""
        doc_uuid = _as_uuid(document_id)
        if doc_uuid is None:
            return None
        stmt = (
            select(DocumentModel)
            .where(DocumentModel.id == doc_uuid)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_document(self, document_id: str) -> DocumentData | None:
        doc = self.get_model(document_id)
        return document_to_dto(doc) if doc is not None else None

    def lock_document(self, document_id: str) -> DocumentData | None:
        """
        Read a document under a row lock (SELECT ... FOR UPDATE).

        The lock is held until the caller's transaction ends.
        """
        doc = self.get_model(document_id, for_update=True)
        return document_to_dto(doc) if doc is not None else None

    def find_order_by_quotation_id(self, quotation_id: str) -> DocumentData | None:
        q_uuid = _as_uuid(quotation_id)
        if q_uuid is None:
            return None
        doc = self.session.execute(
            select(DocumentModel)
            .where(DocumentModel.quotation_id == q_uuid)
            .where(DocumentModel.kind == DocumentKind.ORDER.value)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return document_to_dto(doc) if doc is not None else None

    def find_folio_kind(self, folio: str) -> DocumentKind | None:
        """Kind of the document holding ``folio``, or None if it is free."""
        kind = self.session.execute(
            select(DocumentModel.kind).where(DocumentModel.folio == folio)
        ).scalar_one_or_none()
        return DocumentKind(kind) if kind is not None else None

    def find_expirable_quotations(self, statuses: Sequence[str]) -> list[DocumentData]:
        """Quotations in any of ``statuses`` that carry an expiry window."""
        rows = self.session.execute(
            select(DocumentModel)
            .where(DocumentModel.kind == DocumentKind.QUOTATION.value)
            .where(DocumentModel.status.in_(list(statuses)))
            .where(DocumentModel.issue_date.is_not(None))
            .where(DocumentModel.validity_days.is_not(None))
            .order_by(DocumentModel.issue_date, DocumentModel.folio)
        ).scalars().all()
        return [document_to_dto(doc, with_items=False) for doc in rows]

    def get_status_history(
        self,
        document_id: str,
        status_type: StatusType | None = None,
    ) -> list[StatusHistoryRecord]:
        doc_uuid = _as_uuid(document_id)
        if doc_uuid is None:
            return []
        stmt = select(StatusHistoryModel).where(
            StatusHistoryModel.document_id == doc_uuid
        )
        if status_type is not None:
            stmt = stmt.where(StatusHistoryModel.status_type == StatusType(status_type).value)
        stmt = stmt.order_by(
            StatusHistoryModel.changed_at.desc(),
            StatusHistoryModel.id.desc(),
        )
        return [history_to_dto(row) for row in self.session.execute(stmt).scalars()]

    def count_by_status(self, kind: DocumentKind) -> dict[str, int]:
        """Document counts per status.  Every status of the kind is present."""
        kind = DocumentKind(kind)
        statuses = QuotationStatus if kind == DocumentKind.QUOTATION else OrderStatus
        counts = {s.value: 0 for s in statuses}
        rows = self.session.execute(
            select(DocumentModel.status, func.count(DocumentModel.id))
            .where(DocumentModel.kind == kind.value)
            .group_by(DocumentModel.status)
        ).all()
        for status, count in rows:
            counts[status] = count
        return counts

    def get_active_tax_config(self, tax_id: str) -> TaxConfiguration | None:
        tax_uuid = _as_uuid(tax_id)
        if tax_uuid is None:
            return None
        row = self.session.execute(
            select(TaxConfigurationModel)
            .where(TaxConfigurationModel.id == tax_uuid)
            .where(TaxConfigurationModel.is_active.is_(True))
        ).scalar_one_or_none()
        return self._tax_to_dto(row) if row is not None else None

    def get_default_tax_config(self) -> TaxConfiguration | None:
        row = self.session.execute(
            select(TaxConfigurationModel)
            .where(TaxConfigurationModel.is_default.is_(True))
            .where(TaxConfigurationModel.is_active.is_(True))
            .order_by(TaxConfigurationModel.name)
            .limit(1)
        ).scalar_one_or_none()
        return self._tax_to_dto(row) if row is not None else None

    def get_user_role(self, user_id: str) -> UserRole | None:
        user_uuid = _as_uuid(user_id)
        if user_uuid is None:
            return None
        role = self.session.execute(
            select(UserModel.role).where(UserModel.id == user_uuid)
        ).scalar_one_or_none()
        return UserRole(role) if role is not None else None

    def get_company_status(self, company_id: str) -> CompanyStatus | None:
        company_uuid = _as_uuid(company_id)
        if company_uuid is None:
            return None
        status = self.session.execute(
            select(CompanyModel.status).where(CompanyModel.id == company_uuid)
        ).scalar_one_or_none()
        return CompanyStatus(status) if status is not None else None

    @staticmethod
    def _tax_to_dto(row: TaxConfigurationModel) -> TaxConfiguration:
        return TaxConfiguration(
            id=str(row.id),
            name=row.name,
            kind=TaxKind(row.kind),
            rate=row.rate,
            amount=row.amount,
            is_default=row.is_default,
            is_active=row.is_active,
        )
