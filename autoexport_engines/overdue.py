"""
Read-time OVERDUE presentation of invoices.

The write path stores PENDING / PARTIALLY_PAID / PAID / CANCELLED only.
OVERDUE is layered on when an invoice is read: an open invoice (PENDING or
PARTIALLY_PAID) whose due date is strictly before the as-of date.  Nothing
here is persisted.
"""

from __future__ import annotations

from datetime import date

from autoexport_kernel.domain.statuses import PaymentStatus

_OPEN_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.PARTIALLY_PAID})


def is_overdue(stored: PaymentStatus | str, due_date: date | None, as_of: date) -> bool:
    return (
        PaymentStatus(stored) in _OPEN_STATUSES
        and due_date is not None
        and due_date < as_of
    )


def presented_payment_status(
    stored: PaymentStatus | str, due_date: date | None, as_of: date
) -> PaymentStatus:
    """Stored status, or OVERDUE when an open invoice is past its due date."""
    if is_overdue(stored, due_date, as_of):
        return PaymentStatus.OVERDUE
    return PaymentStatus(stored)
