"""Commission rate bounds shared by templates and affiliates."""
from decimal import Decimal, InvalidOperation
from typing import Union

from commissions.errors import RateOutOfRangeError

MIN_RATE = Decimal("0")
MAX_RATE = Decimal("100")
MAX_COMBINED_RATE = Decimal("100")
# Rates are stored as NUMERIC(5, 2).
CENTS = Decimal("0.01")

RateLike = Union[Decimal, int, float, str]


def to_rate(value: RateLike) -> Decimal:
    """Coerce a rate to Decimal without binary float noise (12.5 -> Decimal('12.5'))."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise RateOutOfRangeError(f"Rate {value!r} is not a number") from exc


def validate_rates(upfront_rate: Decimal, residual_rate: Decimal) -> list[str]:
    """Return every bound the pair violates; empty when valid."""
    errors = []
    if not MIN_RATE <= upfront_rate <= MAX_RATE:
        errors.append("Upfront rate must be between 0 and 100")
    elif upfront_rate != upfront_rate.quantize(CENTS):
        errors.append("Upfront rate cannot have more than 2 decimal places")
    if not MIN_RATE <= residual_rate <= MAX_RATE:
        errors.append("Residual rate must be between 0 and 100")
    elif residual_rate != residual_rate.quantize(CENTS):
        errors.append("Residual rate cannot have more than 2 decimal places")
    if upfront_rate + residual_rate > MAX_COMBINED_RATE:
        errors.append("Combined rates cannot exceed 100%")
    return errors


def ensure_valid_rates(upfront_rate: RateLike, residual_rate: RateLike) -> tuple[Decimal, Decimal]:
    """Return the pair as Decimals or raise RateOutOfRangeError listing every violation."""
    upfront = to_rate(upfront_rate)
    residual = to_rate(residual_rate)
    if not upfront.is_finite() or not residual.is_finite():
        raise RateOutOfRangeError("Rates must be finite numbers")
    errors = validate_rates(upfront, residual)
    if errors:
        raise RateOutOfRangeError("; ".join(errors), errors)
    return upfront, residual
