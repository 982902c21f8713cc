"""
Module: quote_kernel.models.status_history
Responsibility: Append-only audit trail of document status changes.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are rejected by ORM listeners
      (db/immutability.py).
    - Ordered by changed_at; the index supports newest-first reads.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from quote_kernel.db.base import Base, UUIDString
from quote_kernel.db.types import code_type


class StatusHistoryModel(Base):
    """One status change.  ``old_status`` is NULL for the creation entry."""

    __tablename__ = "status_history"

    __table_args__ = (
        CheckConstraint(
            "status_type IN ('quotation_status', 'order_status')",
            name="ck_status_history_valid_type",
        ),
        Index("ix_status_history_document_time", "document_id", "changed_at"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=False,
    )
    status_type: Mapped[str] = mapped_column(code_type(), nullable=False)
    old_status: Mapped[str | None] = mapped_column(code_type(), nullable=True)
    new_status: Mapped[str] = mapped_column(code_type(), nullable=False)
    changed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<StatusHistoryModel {self.document_id} "
            f"{self.old_status}->{self.new_status}>"
        )
