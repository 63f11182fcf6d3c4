"""
Tests for the payment status state machine.

Covers:
- PENDING / PARTIALLY_PAID / PAID derivation with tolerance
- paid_at set, kept and cleared
- CANCELLED pass-through
- Monotonic progression under growing receipts
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from autoexport_engines.payment_status import (
    derive_payment_status,
    is_paid_in_full,
    reconcile_payment,
)
from autoexport_kernel.domain.statuses import PaymentStatus

NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
EARLIER = NOW - timedelta(days=10)
TOTAL = Decimal("1150000")


class TestDerivePaymentStatus:
    @pytest.mark.parametrize(
        "received,expected",
        [
            ("0", PaymentStatus.PENDING),
            ("-5", PaymentStatus.PENDING),
            ("0.01", PaymentStatus.PARTIALLY_PAID),
            ("575000", PaymentStatus.PARTIALLY_PAID),
            ("1149999.98", PaymentStatus.PARTIALLY_PAID),
            ("1149999.99", PaymentStatus.PAID),
            ("1150000", PaymentStatus.PAID),
            ("2000000", PaymentStatus.PAID),
        ],
    )
    def test_thresholds(self, received, expected):
        assert derive_payment_status(Decimal(received), TOTAL) is expected

    def test_zero_total_is_paid(self):
        assert derive_payment_status(Decimal("0"), Decimal("0")) is PaymentStatus.PAID

    def test_custom_tolerance(self):
        assert is_paid_in_full(Decimal("99"), Decimal("100"), Decimal("1"))
        assert not is_paid_in_full(Decimal("98.99"), Decimal("100"), Decimal("1"))


class TestReconcilePayment:
    def test_becomes_paid_sets_paid_at(self):
        d = reconcile_payment(
            current_status=PaymentStatus.PENDING,
            current_paid_at=None,
            received=TOTAL,
            total=TOTAL,
            now=NOW,
        )

        assert d.status is PaymentStatus.PAID
        assert d.paid_at == NOW
        assert d.changed
        assert d.outstanding == Decimal("0")

    def test_already_paid_keeps_original_paid_at(self):
        d = reconcile_payment(
            current_status="PAID",
            current_paid_at=EARLIER,
            received=TOTAL + Decimal("10"),
            total=TOTAL,
            now=NOW,
        )

        assert d.paid_at == EARLIER
        assert not d.changed

    def test_no_longer_paid_clears_paid_at(self):
        d = reconcile_payment(
            current_status=PaymentStatus.PAID,
            current_paid_at=EARLIER,
            received=Decimal("0"),
            total=TOTAL,
            now=NOW,
        )

        assert d.status is PaymentStatus.PENDING
        assert d.paid_at is None
        assert d.changed

    def test_partial(self):
        d = reconcile_payment(
            current_status=PaymentStatus.PENDING,
            current_paid_at=None,
            received=Decimal("500000"),
            total=TOTAL,
            now=NOW,
        )

        assert d.status is PaymentStatus.PARTIALLY_PAID
        assert d.paid_at is None
        assert d.outstanding == Decimal("650000")

    def test_cancelled_is_untouched(self):
        d = reconcile_payment(
            current_status=PaymentStatus.CANCELLED,
            current_paid_at=None,
            received=TOTAL,
            total=TOTAL,
            now=NOW,
        )

        assert d.status is PaymentStatus.CANCELLED
        assert not d.changed

    def test_unchanged_pending(self):
        d = reconcile_payment(
            current_status=PaymentStatus.PENDING,
            current_paid_at=None,
            received=Decimal("0"),
            total=TOTAL,
            now=NOW,
        )

        assert not d.changed

    def test_monotonic_under_growing_receipts(self):
        order = [PaymentStatus.PENDING, PaymentStatus.PARTIALLY_PAID, PaymentStatus.PAID]
        status, paid_at = PaymentStatus.PENDING, None
        seen = []
        for received in ("0", "1", "100000", "1149999", "1150000", "1200000"):
            d = reconcile_payment(
                current_status=status,
                current_paid_at=paid_at,
                received=Decimal(received),
                total=TOTAL,
                now=NOW,
            )
            assert (d.status is PaymentStatus.PAID) == (d.paid_at is not None)
            if seen:
                assert order.index(d.status) >= order.index(seen[-1])
            seen.append(d.status)
            status, paid_at = d.status, d.paid_at

        assert seen[-1] is PaymentStatus.PAID
