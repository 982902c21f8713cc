"""
Module: quote_kernel.models.document
Responsibility: ORM persistence for quotations, orders and their line items.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Folio uniqueness: UNIQUE(folio) across both kinds.
    - At most one order per quotation: UNIQUE(quotation_id).  NULLs are
      distinct, so quotations (which carry no quotation_id) never collide.
    - Kind and money sign: check constraints.
    - Converted quotations and all line items are immutable once flushed
      (ORM listeners in db/immutability.py).

Failure modes:
    - IntegrityError on duplicate folio or duplicate quotation_id.  The
      store adapter maps the latter to DuplicateConversionError.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quote_kernel.db.base import TrackedBase, UUIDString
from quote_kernel.db.types import (
    code_type,
    folio_type,
    money_type,
    name_type,
    quantity_type,
    rate_type,
)


class DocumentModel(TrackedBase):
    """
    A quotation or an order.

    Both kinds share one table so that folio uniqueness and the
    order-to-quotation back-reference are plain column constraints.
    """

    __tablename__ = "documents"

    __table_args__ = (
        UniqueConstraint("folio", name="uq_documents_folio"),
        UniqueConstraint("quotation_id", name="uq_documents_quotation_id"),
        CheckConstraint(
            "kind IN ('quotation', 'order')",
            name="ck_documents_valid_kind",
        ),
        CheckConstraint(
            "subtotal >= 0 AND tax_amount >= 0 AND discount >= 0 AND total >= 0",
            name="ck_documents_non_negative_amounts",
        ),
        CheckConstraint(
            "quotation_id IS NULL OR kind = 'order'",
            name="ck_documents_quotation_ref_on_orders",
        ),
        Index("ix_documents_kind_status", "kind", "status"),
        Index("ix_documents_company", "company_id"),
    )

    folio: Mapped[str] = mapped_column(folio_type(), nullable=False)
    kind: Mapped[str] = mapped_column(code_type(), nullable=False)
    status: Mapped[str] = mapped_column(code_type(), nullable=False)

    company_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("companies.id"), nullable=True,
    )
    contact_name: Mapped[str | None] = mapped_column(name_type(), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(name_type(), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(code_type(), nullable=True)

    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    validity_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(money_type(), nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(money_type(), nullable=False, default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(money_type(), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(money_type(), nullable=False, default=Decimal("0"))

    quotation_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=True,
    )
    created_by: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list[DocumentItemModel]] = relationship(
        back_populates="document",
        order_by="DocumentItemModel.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<DocumentModel {self.folio} {self.kind}:{self.status}>"


class DocumentItemModel(TrackedBase):
    """A line item.  Price and tax rate are snapshots taken when the line was added."""

    __tablename__ = "document_items"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_document_items_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_document_items_unit_price"),
        CheckConstraint("tax_rate >= 0", name="ck_document_items_tax_rate"),
        Index("ix_document_items_document", "document_id", "position"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    product_code: Mapped[str] = mapped_column(code_type(), nullable=False)
    product_name: Mapped[str] = mapped_column(name_type(), nullable=False)
    unit: Mapped[str] = mapped_column(code_type(), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(quantity_type(), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(money_type(), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(rate_type(), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(money_type(), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(money_type(), nullable=False)
    total: Mapped[Decimal] = mapped_column(money_type(), nullable=False)

    document: Mapped[DocumentModel] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<DocumentItemModel {self.product_code} x{self.quantity}>"
