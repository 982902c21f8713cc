"""
Module: quote_kernel.models.folio_counter
Responsibility: One counter row per document kind, locked with
    SELECT ... FOR UPDATE when a folio number is reserved.

Invariants enforced:
    - UNIQUE(kind): a single source of truth per kind.  Folio numbers are
      never derived from MAX(folio) + 1.
"""

from sqlalchemy import BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from quote_kernel.db.base import Base
from quote_kernel.db.types import code_type


class FolioCounter(Base):
    __tablename__ = "folio_counters"

    kind: Mapped[str] = mapped_column(code_type(), nullable=False, unique=True)

    # Last number handed out for this kind
    last_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
