"""
Tests for the invoice totals calculator.

Covers:
- Add/subtract classification of charge labels
- Subtotal, tax and total
- Deposit and discount breakdown
- Invalid amounts
"""

from decimal import Decimal

import pytest

from autoexport_engines.charges import (
    ChargeKind,
    ChargeLine,
    compute_invoice_totals,
    normalize_label,
    resolve_charge_kind,
)
from autoexport_kernel.exceptions import InvalidAmountError


class TestChargeKind:
    """Label classification."""

    @pytest.mark.parametrize("label", ["Deposit", "deposit", "  DISCOUNT ", "discount"])
    def test_subtracting_labels(self, label):
        assert resolve_charge_kind(label) is ChargeKind.SUBTRACT

    @pytest.mark.parametrize("label", ["Vehicle", "Export Fees", "Deposit refund", "", None])
    def test_everything_else_adds(self, label):
        assert resolve_charge_kind(label) is ChargeKind.ADD

    def test_custom_subtracting_set(self):
        labels = frozenset({"credit"})
        assert resolve_charge_kind("Credit", labels) is ChargeKind.SUBTRACT
        assert resolve_charge_kind("Deposit", labels) is ChargeKind.ADD

    def test_normalize_label(self):
        assert normalize_label("  Freight ") == "freight"
        assert normalize_label(None) == ""


class TestInvoiceTotals:
    """Subtotal, tax and total."""

    def test_additions_only(self):
        totals = compute_invoice_totals(
            [
                ChargeLine(Decimal("1000000"), "Vehicle"),
                ChargeLine(Decimal("150000"), "Export Fees"),
            ],
            tax_enabled=False,
            tax_rate=None,
        )

        assert totals.subtotal == Decimal("1150000")
        assert totals.tax == Decimal("0")
        assert totals.total == Decimal("1150000")

    def test_deposit_and_discount_subtract(self):
        totals = compute_invoice_totals(
            [
                ChargeLine(Decimal("1000000"), "Vehicle"),
                ChargeLine(Decimal("200000"), "Deposit"),
                ChargeLine(Decimal("50000"), "discount"),
            ],
            tax_enabled=False,
            tax_rate=None,
        )

        assert totals.additions == Decimal("1000000")
        assert totals.deductions == Decimal("250000")
        assert totals.deposit_total == Decimal("200000")
        assert totals.discount_total == Decimal("50000")
        assert totals.subtotal == Decimal("750000")

    def test_tax_applied_when_enabled(self):
        totals = compute_invoice_totals(
            [
                ChargeLine(Decimal("1000000"), "Vehicle"),
                ChargeLine(Decimal("50000"), "Discount"),
            ],
            tax_enabled=True,
            tax_rate=Decimal("10"),
        )

        assert totals.subtotal == Decimal("950000")
        assert totals.tax == Decimal("95000.00")
        assert totals.total == Decimal("1045000.00")

    def test_tax_rounded_half_up(self):
        totals = compute_invoice_totals(
            [ChargeLine(Decimal("10.05"), "Fee")],
            tax_enabled=True,
            tax_rate=Decimal("10"),
        )

        assert totals.tax == Decimal("1.01")

    @pytest.mark.parametrize(
        "enabled,rate",
        [(False, Decimal("10")), (True, None), (True, Decimal("0"))],
    )
    def test_no_tax_without_enabled_nonzero_rate(self, enabled, rate):
        totals = compute_invoice_totals(
            [ChargeLine(Decimal("500"), "Fee")], tax_enabled=enabled, tax_rate=rate
        )

        assert totals.tax == Decimal("0")
        assert totals.total == totals.subtotal

    def test_total_is_subtotal_plus_tax(self):
        charges = [
            ChargeLine(Decimal("123456.78"), "Vehicle"),
            ChargeLine(Decimal("999.99"), "Deposit"),
            ChargeLine(Decimal("0.01"), "Other"),
        ]
        for rate in (Decimal("0"), Decimal("8"), Decimal("10"), Decimal("12.5")):
            totals = compute_invoice_totals(charges, tax_enabled=True, tax_rate=rate)
            assert totals.total == totals.subtotal + totals.tax

    def test_empty_invoice(self):
        totals = compute_invoice_totals([], tax_enabled=True, tax_rate=Decimal("10"))

        assert totals.total == Decimal("0")

    def test_deductions_may_exceed_additions(self):
        totals = compute_invoice_totals(
            [ChargeLine(Decimal("100"), "Fee"), ChargeLine(Decimal("300"), "Deposit")],
            tax_enabled=False,
            tax_rate=None,
        )

        assert totals.total == Decimal("-200")


class TestInvalidInput:
    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidAmountError):
            compute_invoice_totals(
                [ChargeLine(Decimal("-1"), "Fee")], tax_enabled=False, tax_rate=None
            )

    def test_negative_rate_rejected(self):
        with pytest.raises(InvalidAmountError):
            compute_invoice_totals(
                [ChargeLine(Decimal("1"), "Fee")], tax_enabled=True, tax_rate=Decimal("-5")
            )
