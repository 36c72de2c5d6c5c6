# payments/services/fees.py

"""
Platform fee policy.

Pure: the same gross amount and rate always give the same split, and
``fee_amount + net_amount == gross_amount``. Amounts are integer minor units;
the fee is floored so the platform never rounds up against the worker.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from payments.exceptions import InvalidAmount

DEFAULT_FEE_RATE = "0.05"


@dataclass(frozen=True)
class FeeBreakdown:
    gross_amount: int
    fee_amount: int
    net_amount: int
    fee_rate: Decimal

    def as_dict(self):
        return {
            "originalAmount": self.gross_amount,
            "fee": self.fee_amount,
            "feeRate": str(self.fee_rate),
            "netAmount": self.net_amount,
        }


def get_fee_rate(payer_role: str | None = None) -> Decimal:
    """Rate for a payer role, falling back to PAYMENT_FEE_RATE."""
    by_role = getattr(settings, "PAYMENT_FEE_RATES_BY_ROLE", None) or {}
    raw = by_role.get((payer_role or "").lower(), getattr(settings, "PAYMENT_FEE_RATE", DEFAULT_FEE_RATE))
    rate = Decimal(str(raw))
    if not (Decimal("0") <= rate < Decimal("1")):
        raise ImproperlyConfigured(f"Fee rate must be in [0, 1), got {rate}")
    return rate


def compute_fee(gross_amount: int, payer_role: str | None = None, fee_rate=None) -> FeeBreakdown:
    if isinstance(gross_amount, bool) or not isinstance(gross_amount, int) or gross_amount < 0:
        raise InvalidAmount(f"Invalid gross amount: {gross_amount!r}")

    rate = Decimal(str(fee_rate)) if fee_rate is not None else get_fee_rate(payer_role)
    fee = int((Decimal(gross_amount) * rate).to_integral_value(rounding=ROUND_FLOOR))
    return FeeBreakdown(
        gross_amount=gross_amount,
        fee_amount=fee,
        net_amount=gross_amount - fee,
        fee_rate=rate,
    )
