"""
Module: autoexport_engines.payment_status
Responsibility:
    Derive an invoice's stored payment status from the amount received
    and the invoice total, and decide paid_at.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The current time is
    passed in by the caller (never read from the system clock here).

Invariants enforced:
    - Status is recomputed from scratch, never stepped incrementally:
        received >= total - tolerance  -> PAID
        received > 0                   -> PARTIALLY_PAID
        otherwise                      -> PENDING
      PAID is tested first, so a zero-total invoice is PAID.
    - paid_at is non-null iff the decided status is PAID.  An invoice that
      was already PAID keeps its original paid_at.
    - CANCELLED is terminal: a cancelled invoice is returned unchanged.
    - OVERDUE is never produced here (see autoexport_engines.overdue).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from autoexport_engines.tracer import traced_engine
from autoexport_kernel.db.types import ZERO
from autoexport_kernel.domain.statuses import PaymentStatus

DEFAULT_TOLERANCE = Decimal("0.01")


def is_paid_in_full(
    received: Decimal, total: Decimal, tolerance: Decimal = DEFAULT_TOLERANCE
) -> bool:
    return received >= total - tolerance


def derive_payment_status(
    received: Decimal,
    total: Decimal,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> PaymentStatus:
    if is_paid_in_full(received, total, tolerance):
        return PaymentStatus.PAID
    if received > ZERO:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PENDING


@dataclass(frozen=True)
class PaymentDecision:
    """
    Outcome of one reconciliation.

    Guarantees:
        - (status == PAID) == (paid_at is not None), except for a CANCELLED
          invoice whose stored values are passed through.
    """

    status: PaymentStatus
    paid_at: datetime | None
    received: Decimal
    total: Decimal
    changed: bool

    @property
    def outstanding(self) -> Decimal:
        return max(self.total - self.received, ZERO)


@traced_engine(
    "payment_status", "1.0", fingerprint_fields=("current_status", "received", "total")
)
def reconcile_payment(
    *,
    current_status: PaymentStatus | str,
    current_paid_at: datetime | None,
    received: Decimal,
    total: Decimal,
    now: datetime,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> PaymentDecision:
    current = PaymentStatus(current_status)

    if current is PaymentStatus.CANCELLED:
        return PaymentDecision(
            status=current,
            paid_at=current_paid_at,
            received=received,
            total=total,
            changed=False,
        )

    status = derive_payment_status(received, total, tolerance)

    match status:
        case PaymentStatus.PAID if current is PaymentStatus.PAID and current_paid_at:
            paid_at = current_paid_at
        case PaymentStatus.PAID:
            paid_at = now
        case _:
            paid_at = None

    return PaymentDecision(
        status=status,
        paid_at=paid_at,
        received=received,
        total=total,
        changed=(status is not current or paid_at != current_paid_at),
    )
