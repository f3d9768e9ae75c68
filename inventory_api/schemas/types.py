"""
Shared Pydantic types for schema validation.

Money: exact Decimal on the way in, quantized to cents. Values are kept as
Decimal inside the service layer; response builders call ``money_out`` to
turn them into JSON numbers.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from pydantic import AfterValidator, Field

CENTS = Decimal("0.01")

# Matches the Numeric(10, 2) price column: at most 8 digits before the point.
MONEY_PRECISION = 10
MONEY_LIMIT = Decimal(10) ** (MONEY_PRECISION - 2)


def quantize_money(value) -> Decimal:
    """Round to cents, half up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def money_out(value) -> float:
    """Cents-quantized float for JSON payloads."""
    if value is None:
        return 0.0
    return float(quantize_money(value))


def check_money_limit(value: Decimal) -> Decimal:
    if value >= MONEY_LIMIT:
        raise ValueError(f"must be less than {MONEY_LIMIT:,.2f}")
    return value


Money = Annotated[Decimal, Field(ge=0), AfterValidator(quantize_money), AfterValidator(check_money_limit)]
