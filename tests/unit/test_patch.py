"""Tests for partial-update patches and the UNSET sentinel."""

from datetime import date
from decimal import Decimal

from autoexport_kernel.domain.dtos import ChargeInput, CostItemInput
from autoexport_kernel.domain.patch import (
    UNSET,
    InvoicePatch,
    SharedInvoicePatch,
    TransactionPatch,
    is_set,
)


class TestUnset:
    def test_singleton_and_falsy(self):
        assert not UNSET
        assert repr(UNSET) == "UNSET"
        assert type(UNSET)() is UNSET

    def test_none_is_set(self):
        assert is_set(None)
        assert not is_set(UNSET)


class TestPatchProvided:
    def test_only_supplied_fields(self):
        patch = InvoicePatch(tax_enabled=True, tax_rate=Decimal("10"))

        assert patch.provided() == {"tax_enabled": True, "tax_rate": Decimal("10")}

    def test_explicit_none_clears(self):
        patch = InvoicePatch(due_date=None)

        assert patch.provided() == {"due_date": None}
        assert not patch.touches_totals

    def test_empty(self):
        assert TransactionPatch().is_empty
        assert not TransactionPatch(invoice_id=None).is_empty

    def test_touches_totals(self):
        assert InvoicePatch(charges=(ChargeInput("Fee", Decimal("1")),)).touches_totals
        assert InvoicePatch(tax_rate=None).touches_totals
        assert not InvoicePatch(notes="x", due_date=date(2024, 1, 1)).touches_totals

    def test_shared_invoice_patch(self):
        patch = SharedInvoicePatch(
            total_amount=Decimal("1"), cost_items=(CostItemInput("Freight", Decimal("1")),)
        )

        assert set(patch.provided()) == {"total_amount", "cost_items"}


class TestCostItemInput:
    def test_metadata_shape(self):
        assert CostItemInput("Ocean freight", Decimal("250000.50")).to_metadata() == {
            "description": "Ocean freight",
            "amount": "250000.50",
        }
