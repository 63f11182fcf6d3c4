"""
Property-based checks of the pure ledger engines.

Invariants exercised with generated inputs:
- Equal-split drift never exceeds n x 0.005
- total == subtotal + tax, and tax is zero when disabled
- Payment status never moves backwards as receipts grow
- Margin and ROI fall back to zero for zero revenue / zero cost
"""

from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from autoexport_engines.allocation import allocate_equally
from autoexport_engines.charges import ChargeLine, compute_invoice_totals
from autoexport_engines.payment_status import derive_payment_status
from autoexport_engines.profitability import compute_profit_metrics
from autoexport_kernel.domain.statuses import PaymentStatus

money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("999999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

labels = st.sampled_from(["Vehicle", "Export Fees", "Deposit", "discount", " DEPOSIT ", None])

_STATUS_RANK = {
    PaymentStatus.PENDING: 0,
    PaymentStatus.PARTIALLY_PAID: 1,
    PaymentStatus.PAID: 2,
}


class TestAllocationProperties:
    @settings(max_examples=200, deadline=None)
    @given(total=money, n=st.integers(min_value=1, max_value=40))
    def test_drift_is_bounded(self, total, n):
        result = allocate_equally(total_amount=total, vehicle_ids=[uuid4() for _ in range(n)])

        assert abs(result.drift) <= Decimal("0.005") * n
        assert len(result.shares) == n
        assert len({s.amount for s in result.shares}) == 1


class TestTotalsProperties:
    @settings(max_examples=200, deadline=None)
    @given(
        lines=st.lists(st.tuples(money, labels), max_size=12),
        tax_enabled=st.booleans(),
        tax_rate=st.one_of(st.none(), st.decimals(min_value=0, max_value=30, places=2)),
    )
    def test_total_is_subtotal_plus_tax(self, lines, tax_enabled, tax_rate):
        charges = [ChargeLine(amount=amount, label=label) for amount, label in lines]

        totals = compute_invoice_totals(charges, tax_enabled=tax_enabled, tax_rate=tax_rate)

        assert totals.total == totals.subtotal + totals.tax
        assert totals.subtotal == totals.additions - totals.deductions
        if not tax_enabled or not tax_rate:
            assert totals.tax == Decimal("0")


class TestPaymentStatusProperties:
    @settings(max_examples=200, deadline=None)
    @given(
        total=money,
        payments=st.lists(
            st.decimals(min_value=Decimal("0.01"), max_value=Decimal("500000"), places=2),
            max_size=10,
        ),
    )
    def test_status_is_monotone_in_receipts(self, total, payments):
        received = Decimal("0")
        rank = _STATUS_RANK[derive_payment_status(received, total)]

        for amount in payments:
            received += amount
            status = derive_payment_status(received, total)
            assert _STATUS_RANK[status] >= rank
            rank = _STATUS_RANK[status]


class TestProfitProperties:
    @settings(max_examples=100, deadline=None)
    @given(revenue=money, cost=money)
    def test_profit_identity_and_degenerate_cases(self, revenue, cost):
        metrics = compute_profit_metrics(total_revenue=revenue, total_cost=cost)

        assert metrics.profit == metrics.total_revenue - metrics.total_cost
        if revenue == 0:
            assert metrics.margin == Decimal("0")
        if cost == 0:
            assert metrics.roi == Decimal("0")
