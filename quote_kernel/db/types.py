"""
Module: quote_kernel.db.types
Responsibility: Column type definitions shared by every model, so that
    stored precision matches the rounding rules of the domain layer.
Architecture position: Kernel > DB.  May be imported by models/.

Invariants enforced:
    - Money columns hold exactly 2 fractional digits (currency precision).
    - Quantity columns hold 3 fractional digits.
    - Rate columns hold 6 fractional digits so snapshot tax rates
      round-trip exactly.
    CRITICAL: No floats.  All amounts are Numeric with explicit scale.
"""

from sqlalchemy import Numeric, String

MONEY_PRECISION = 18
MONEY_SCALE = 2
QUANTITY_SCALE = 3
RATE_SCALE = 6


def money_type() -> Numeric:
    return Numeric(MONEY_PRECISION, MONEY_SCALE)


def quantity_type() -> Numeric:
    return Numeric(MONEY_PRECISION, QUANTITY_SCALE)


def rate_type() -> Numeric:
    return Numeric(9, RATE_SCALE)


def folio_type() -> String:
    # COT-XXXXXXXX / ORD-XXXXXXXX
    return String(12)


def code_type() -> String:
    """Status, kind, role and unit tags."""
    return String(30)


def name_type() -> String:
    return String(255)
