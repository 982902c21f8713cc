"""
Module: quote_kernel.models.reference
Responsibility: Reference data read by the kernel: users (for role checks),
    companies (for active-status checks) and tax configurations.

Architecture position: Kernel > Models.  The kernel never mutates these
tables; they are owned by the surrounding application.
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from quote_kernel.db.base import Base
from quote_kernel.db.types import code_type, money_type, name_type, rate_type


class UserModel(Base):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'client')", name="ck_users_valid_role"),
    )

    email: Mapped[str] = mapped_column(name_type(), nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(name_type(), nullable=True)
    role: Mapped[str] = mapped_column(code_type(), nullable=False, default="client")


class CompanyModel(Base):
    __tablename__ = "companies"

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'suspended')",
            name="ck_companies_valid_status",
        ),
    )

    name: Mapped[str] = mapped_column(name_type(), nullable=False)
    status: Mapped[str] = mapped_column(code_type(), nullable=False, default="active")


class TaxConfigurationModel(Base):
    __tablename__ = "tax_configurations"

    __table_args__ = (
        CheckConstraint(
            "kind IN ('percentage', 'fixed_amount')",
            name="ck_tax_configurations_valid_kind",
        ),
    )

    name: Mapped[str] = mapped_column(name_type(), nullable=False)
    kind: Mapped[str] = mapped_column(code_type(), nullable=False)
    rate: Mapped[Decimal] = mapped_column(rate_type(), nullable=False, default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(money_type(), nullable=False, default=Decimal("0"))
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
