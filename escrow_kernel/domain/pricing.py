"""
Pricing -- settlement price arithmetic and money input parsing.

Pure functions, no I/O.  All money is Decimal; floats are converted via
``str()`` so that ``500.1`` becomes ``Decimal("500.1")`` and not its binary
approximation.

Amounts live in ``Numeric(38, 9)`` columns: at most 29 integer digits and
9 decimal places.  Inputs that do not fit are rejected rather than letting
the store round them.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from escrow_kernel.exceptions import InvalidCommissionError, InvalidPriceError

HUNDRED = Decimal("100")
CENT = Decimal("0.01")

MONEY_SCALE = 9
MONEY_INTEGER_DIGITS = 29
MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_SCALE)


def fits_money_column(amount: Decimal) -> bool:
    """True when ``amount`` is stored without losing digits."""
    if amount.is_zero():
        return True
    return (
        amount.normalize().as_tuple().exponent >= -MONEY_SCALE
        and amount.adjusted() < MONEY_INTEGER_DIGITS
    )


def _to_positive_decimal(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    if not fits_money_column(amount):
        return None
    return amount


def parse_price(value: object) -> Decimal:
    """Parse a quoted price.  Raises InvalidPriceError unless it is > 0 and storable."""
    amount = _to_positive_decimal(value)
    if amount is None:
        raise InvalidPriceError(value)
    return amount


def parse_commission(value: object) -> Decimal:
    """Parse a commission percentage.  Raises InvalidCommissionError unless > 0 and storable."""
    percent = _to_positive_decimal(value)
    if percent is None:
        raise InvalidCommissionError(value)
    return percent


def compute_settlement_price(bid_price: Decimal, commission_percent: Decimal) -> Decimal:
    """
    The amount the requester pays: ``bid_price * (1 + commission_percent / 100)``.

    Computed exactly, then rounded half-up to the store's 9 decimal places.
    The result is what the bid row, the commission record and the caller
    all see.  Presentation rounds further with ``format_money``.

    Raises:
        InvalidPriceError: If the result has more integer digits than the
            store holds.
    """
    with localcontext() as ctx:
        ctx.prec = 80
        exact = bid_price * (Decimal(1) + commission_percent / HUNDRED)
        settlement = exact.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
    if settlement.adjusted() >= MONEY_INTEGER_DIGITS:
        raise InvalidPriceError(settlement)
    return settlement


def format_money(amount: Decimal) -> str:
    """Two-decimal rendering for messages, e.g. ``575.00``."""
    return str(amount.quantize(CENT, rounding=ROUND_HALF_UP))
