# lensmanager/utils/decimal_utils.py
from decimal import Decimal, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    return Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def split_deposit(total_amount, deposit_amount) -> tuple[Decimal, Decimal]:
    """Return (deposit, remaining); the deposit never exceeds the total."""
    total_amount = to_decimal(total_amount)
    deposit = min(to_decimal(deposit_amount), total_amount)
    remaining = total_amount - deposit
    return deposit, remaining.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
