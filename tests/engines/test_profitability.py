"""Tests for profit, margin and ROI derivation."""

from decimal import Decimal

from autoexport_engines.profitability import compute_profit_metrics, seed_metrics


class TestProfitMetrics:
    def test_regular_case(self):
        m = compute_profit_metrics(
            total_revenue=Decimal("1150000"), total_cost=Decimal("100000")
        )

        assert m.profit == Decimal("1050000.00")
        assert m.margin == Decimal("91.30")
        assert m.roi == Decimal("1050.00")

    def test_zero_revenue_margin_is_zero(self):
        m = compute_profit_metrics(total_revenue=Decimal("0"), total_cost=Decimal("500"))

        assert m.margin == Decimal("0")
        assert m.profit == Decimal("-500.00")
        assert m.roi == Decimal("-100.00")

    def test_zero_cost_roi_is_zero(self):
        m = compute_profit_metrics(total_revenue=Decimal("500"), total_cost=Decimal("0"))

        assert m.roi == Decimal("0")
        assert m.margin == Decimal("100.00")

    def test_both_zero(self):
        m = compute_profit_metrics(total_revenue=Decimal("0"), total_cost=Decimal("0"))

        assert (m.profit, m.margin, m.roi) == (Decimal("0"), Decimal("0"), Decimal("0"))

    def test_loss(self):
        m = compute_profit_metrics(total_revenue=Decimal("100"), total_cost=Decimal("150"))

        assert m.profit == Decimal("-50.00")
        assert m.margin == Decimal("-50.00")
        assert m.roi == Decimal("-33.33")

    def test_rounding_half_up(self):
        m = compute_profit_metrics(total_revenue=Decimal("3"), total_cost=Decimal("1"))

        assert m.margin == Decimal("66.67")
        assert m.roi == Decimal("200.00")


class TestSeedMetrics:
    def test_fresh_cost_invoice(self):
        m = seed_metrics(Decimal("1150000"))

        assert m.total_revenue == Decimal("1150000.00")
        assert m.total_cost == Decimal("0")
        assert m.profit == m.total_revenue
        assert m.margin == Decimal("100")
        assert m.roi == Decimal("0")
