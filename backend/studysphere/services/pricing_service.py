"""Centralized pricing calculations for sessions and payment splits."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..domain.time_range import TimeRange

MONEY_QUANT = Decimal("0.01")
FEE_QUANT = Decimal("1")

Numeric = Union[Decimal, int, float, str]


def _to_decimal(value: Numeric, field: str) -> Decimal:
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationException(f"Invalid {field}: {value!r}")
    if not result.is_finite():
        raise ValidationException(f"Invalid {field}: {value!r}")
    return result


@dataclass(frozen=True)
class PaymentSplit:
    """Amount split between the platform and the tutor, fixed at order creation."""

    amount: Decimal
    platform_fee: Decimal
    tutor_amount: Decimal


class PricingService:
    """
    Stateless price and fee calculator.

    Session price = hourly rate x duration in hours, rounded half-up to the
    stored precision (two decimals). The result is snapshotted on the
    session and never recomputed.
    """

    @staticmethod
    def session_price(hourly_rate: Numeric, time_range: TimeRange) -> Decimal:
        rate = _to_decimal(hourly_rate, "hourly rate")
        if rate <= 0:
            raise ValidationException("Tutor hourly rate must be positive")
        price = (rate * time_range.duration_hours).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
        if price <= 0:
            raise ValidationException("Session price must be positive")
        return price

    @staticmethod
    def payment_split(amount: Numeric, fee_percent: Numeric | None = None) -> PaymentSplit:
        """
        Platform fee is ``fee_percent`` of ``amount`` rounded to whole currency units.

        ``fee_percent`` defaults to the configured PLATFORM_FEE_PERCENT.
        """
        total = _to_decimal(amount, "amount").quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
        percent = _to_decimal(
            settings.platform_fee_percent if fee_percent is None else fee_percent,
            "platform fee percent",
        )
        platform_fee = (total * percent / Decimal(100)).quantize(FEE_QUANT, rounding=ROUND_HALF_UP)
        platform_fee = platform_fee.quantize(MONEY_QUANT)
        return PaymentSplit(amount=total, platform_fee=platform_fee, tutor_amount=total - platform_fee)

    @staticmethod
    def to_minor_units(amount: Numeric) -> int:
        """Gateway amounts are integers in the smallest currency unit (paise)."""
        return int((_to_decimal(amount, "amount") * 100).quantize(FEE_QUANT, rounding=ROUND_HALF_UP))
