"""
RoundingEngine -- Currency-precision rounding.

Responsibility:
    The ONLY sanctioned rounding function for monetary values in the kernel.
    Every calculation, validation and persistence path delegates to
    ``round_to_currency`` so that stored and recomputed figures agree exactly.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Round-half-to-even at 2 fractional digits (0.125 -> 0.12, 0.135 -> 0.14).
    - Idempotent: round(round(x)) == round(x).
    - No floats reach arithmetic.  Floats are converted through ``str`` so
      that the literal the caller wrote is what gets rounded.

Failure modes:
    - InvalidAmountError for NaN, infinity, booleans, None, strings that
      are not decimal literals, or magnitudes beyond the decimal exponent
      range.  Large finite amounts are quantized at whatever precision
      they need, never truncated to the 28-digit default context.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext

from quote_kernel.exceptions import InvalidAmountError

MONEY_DECIMAL_PLACES = 2
QUANTITY_DECIMAL_PLACES = 3
RATE_DECIMAL_PLACES = 6
ROUNDING_MODE = ROUND_HALF_EVEN

ZERO = Decimal("0.00")


def to_decimal(value: object) -> Decimal:
    """
    Coerce a numeric input into a finite Decimal.

    Accepts Decimal, int, float and decimal strings.  Anything else, and any
    non-finite value, raises InvalidAmountError.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise InvalidAmountError(value) from exc
    else:
        raise InvalidAmountError(value)

    if not result.is_finite():
        raise InvalidAmountError(value)
    return result


def _quantize(value: Decimal, decimal_places: int) -> Decimal:
    exponent = Decimal(1).scaleb(-decimal_places)
    with localcontext() as ctx:
        # Enough digits for every integer digit plus the fractional ones.
        ctx.prec = max(ctx.prec, value.adjusted() + decimal_places + 2)
        try:
            return value.quantize(exponent, rounding=ROUNDING_MODE)
        except InvalidOperation as exc:
            raise InvalidAmountError(value) from exc


def round_to_currency(
    amount: object,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> Decimal:
    """
    Round a monetary amount to currency precision.

    Preconditions: amount is a finite number (see ``to_decimal``).
    Postconditions: Returns a Decimal with exactly ``decimal_places``
        fractional digits, rounded half-to-even.

    Raises:
        InvalidAmountError: If amount is not a finite, well-formed number.
    """
    return _quantize(to_decimal(amount), decimal_places)


def round_quantity(quantity: object) -> Decimal:
    """Round a quantity to 3 places, half-to-even."""
    return _quantize(to_decimal(quantity), QUANTITY_DECIMAL_PLACES)


def round_rate(rate: object) -> Decimal:
    """Round a tax rate to the 6 places a stored snapshot keeps."""
    return _quantize(to_decimal(rate), RATE_DECIMAL_PLACES)
