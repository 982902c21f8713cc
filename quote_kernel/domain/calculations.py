"""
CalculationEngine -- line-item and document monetary math.

Responsibility:
    Pricing (cost -> base -> public), tax, line-item and document totals.
    Every intermediate figure goes through ``round_to_currency``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Line item: subtotal = round(quantity * unit_price);
      tax_amount = round(subtotal * tax_rate); total = round(subtotal + tax_amount).
    - Document totals are sum-then-round per field, so they do not depend
      on the order of the items.
    - Document: total = round(subtotal + tax_amount - discount).

Failure modes:
    - InvalidInputError for negative inputs.
    - InvalidAmountError (from rounding) for non-finite inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from quote_kernel.domain.dtos import TaxConfiguration, TaxKind
from quote_kernel.domain.rounding import ZERO, round_to_currency, to_decimal
from quote_kernel.exceptions import InvalidInputError

DEFAULT_IVA_RATE = Decimal("0.16")


@dataclass(frozen=True)
class LineItemCalculation:
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    discount: Decimal = ZERO


@dataclass(frozen=True)
class ProductPricing:
    cost_price: Decimal
    profit_margin: Decimal
    base_price: Decimal
    public_price: Decimal
    tax_id: str
    tax_included: bool


class LineAmounts(Protocol):
    """Anything carrying line-level subtotal and tax (calculations, stored items)."""

    subtotal: Decimal
    tax_amount: Decimal


def _non_negative(field: str, value: object, label: str) -> Decimal:
    amount = to_decimal(value)
    if amount < 0:
        raise InvalidInputError(field, amount, f"{label} cannot be negative")
    return amount


def calculate_base_price(cost_price: object, profit_margin: object) -> Decimal:
    """cost_price * (1 + profit_margin), rounded."""
    cost = _non_negative("cost_price", cost_price, "Cost price")
    margin = _non_negative("profit_margin", profit_margin, "Profit margin")
    return round_to_currency(cost * (1 + margin))


def calculate_tax_amount(base_amount: object, tax_config: TaxConfiguration) -> Decimal:
    """
    Tax owed on ``base_amount`` under ``tax_config``.

    Percentage taxes multiply the base by the rate; fixed taxes return the
    configured amount regardless of base; inactive configurations yield zero.
    """
    base = _non_negative("base_amount", base_amount, "Base amount")
    if not tax_config.is_active:
        return ZERO
    if tax_config.kind == TaxKind.PERCENTAGE:
        return round_to_currency(base * to_decimal(tax_config.rate))
    return round_to_currency(tax_config.amount)


def calculate_public_price(
    base_price: object,
    tax_config: TaxConfiguration,
    tax_included: bool,
) -> Decimal:
    """Public (shelf) price: the base price, plus tax unless already included."""
    base = _non_negative("base_price", base_price, "Base price")
    if tax_included:
        return round_to_currency(base)
    return round_to_currency(base + calculate_tax_amount(base, tax_config))


def calculate_product_pricing(
    cost_price: object,
    profit_margin: object,
    tax_config: TaxConfiguration,
    tax_included: bool = False,
) -> ProductPricing:
    """Full cost -> base -> public price chain for a catalog product."""
    base_price = calculate_base_price(cost_price, profit_margin)
    return ProductPricing(
        cost_price=round_to_currency(cost_price),
        profit_margin=to_decimal(profit_margin),
        base_price=base_price,
        public_price=calculate_public_price(base_price, tax_config, tax_included),
        tax_id=tax_config.id,
        tax_included=tax_included,
    )


def calculate_line_item(
    quantity: object,
    unit_price: object,
    tax_rate: object,
) -> LineItemCalculation:
    qty = _non_negative("quantity", quantity, "Quantity")
    price = _non_negative("unit_price", unit_price, "Unit price")
    rate = _non_negative("tax_rate", tax_rate, "Tax rate")

    subtotal = round_to_currency(qty * price)
    tax_amount = round_to_currency(subtotal * rate)
    total = round_to_currency(subtotal + tax_amount)
    return LineItemCalculation(
        quantity=qty,
        unit_price=price,
        tax_rate=rate,
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=total,
    )


def calculate_line_items(
    items: Iterable[tuple[object, object, object]],
) -> list[LineItemCalculation]:
    """Batch form of calculate_line_item over (quantity, unit_price, tax_rate)."""
    return [calculate_line_item(q, p, r) for q, p, r in items]


def calculate_document_totals(
    items: Iterable[LineAmounts],
    discount: object = ZERO,
) -> DocumentTotals:
    """
    Aggregate line amounts into document totals.

    Each field is summed exactly and rounded once at the end.
    """
    disc = _non_negative("discount", discount, "Discount")
    subtotal = Decimal(0)
    tax_amount = Decimal(0)
    for item in items:
        subtotal += to_decimal(item.subtotal)
        tax_amount += to_decimal(item.tax_amount)

    return DocumentTotals(
        subtotal=round_to_currency(subtotal),
        tax_amount=round_to_currency(tax_amount),
        total=round_to_currency(subtotal + tax_amount - disc),
        discount=round_to_currency(disc),
    )


def validate_document_totals(totals: DocumentTotals) -> bool:
    """
    Exact check of total == round(subtotal + tax_amount - discount).

    A data-integrity check, not a recalculation authority.
    """
    expected = round_to_currency(
        to_decimal(totals.subtotal)
        + to_decimal(totals.tax_amount)
        - to_decimal(totals.discount)
    )
    return expected == to_decimal(totals.total)


def line_item_matches(
    quantity: object,
    unit_price: object,
    tax_rate: object,
    subtotal: object,
    tax_amount: object,
    total: object,
) -> bool:
    """True when stored line amounts equal a fresh calculation."""
    fresh = calculate_line_item(quantity, unit_price, tax_rate)
    return (
        fresh.subtotal == to_decimal(subtotal)
        and fresh.tax_amount == to_decimal(tax_amount)
        and fresh.total == to_decimal(total)
    )


def default_tax_configuration(
    rate: object = DEFAULT_IVA_RATE,
    name: str | None = None,
) -> TaxConfiguration:
    """The default Mexican IVA configuration."""
    rate = to_decimal(rate)
    return TaxConfiguration(
        id=f"default-iva-{int(rate * 100)}",
        name=name or f"IVA {int(rate * 100)}%",
        kind=TaxKind.PERCENTAGE,
        rate=rate,
        is_default=True,
        is_active=True,
    )
