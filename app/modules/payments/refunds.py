"""Refund amount calculation, in integer cents."""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from app.modules.payments.schemas import RefundPolicy, RefundQuote


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def unused_ratio(service_start: datetime, service_end: datetime, cancelled_at: datetime) -> Decimal:
    """Share of the service period left after cancellation, clamped to [0, 1]"""
    total = (service_end - service_start).total_seconds()
    if total <= 0:
        raise ValueError("service_end must be after service_start")
    remaining = (service_end - cancelled_at).total_seconds()
    ratio = Decimal(str(remaining)) / Decimal(str(total))
    return min(Decimal(1), max(Decimal(0), ratio))


def calculate_refund(
    amount_paid: int,
    already_refunded: int = 0,
    policy: RefundPolicy = RefundPolicy.FULL,
    service_start: Optional[datetime] = None,
    service_end: Optional[datetime] = None,
    cancelled_at: Optional[datetime] = None,
    cancellation_fee_percent: float = 0,
) -> RefundQuote:
    if amount_paid < 0:
        raise ValueError("amount_paid must not be negative")
    if already_refunded < 0 or already_refunded > amount_paid:
        raise ValueError("already_refunded must be between 0 and amount_paid")
    if not 0 <= cancellation_fee_percent <= 100:
        raise ValueError("cancellation_fee_percent must be between 0 and 100")

    remaining = amount_paid - already_refunded

    if policy == RefundPolicy.NONE:
        ratio = Decimal(0)
        base = 0
    elif policy == RefundPolicy.PRORATED:
        if not (service_start and service_end and cancelled_at):
            raise ValueError("Prorated refunds need service_start, service_end and cancelled_at")
        ratio = unused_ratio(service_start, service_end, cancelled_at)
        base = min(_round_cents(Decimal(amount_paid) * ratio), remaining)
    else:
        ratio = Decimal(1)
        base = remaining

    fee = _round_cents(Decimal(base) * Decimal(str(cancellation_fee_percent)) / Decimal(100))
    refundable = max(0, base - fee)

    return RefundQuote(
        policy=policy,
        amount_paid_cents=amount_paid,
        already_refunded_cents=already_refunded,
        gross_refund_cents=base,
        fee_cents=fee,
        refundable_cents=refundable,
        unused_ratio=float(ratio),
    )
