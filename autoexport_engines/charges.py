"""
Module: autoexport_engines.charges
Responsibility:
    Classify invoice charge lines as additions or deductions and compute
    the invoice subtotal, tax and total.  This is the ONLY place an invoice
    total is computed; payment reconciliation, cost revenue sync, vehicle
    charge totals and any renderer call it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - total == subtotal + tax.
    - tax == 0 unless tax is enabled and a non-zero rate is set.
    - tax is rounded to the cent, half up.
    - A label is subtracting iff its trimmed, lower-cased form is in the
      subtracting set ({"deposit", "discount"} by default).  Matching is by
      equality, so "Deposit refund" adds.

Failure modes:
    - InvalidAmountError for a negative charge amount or negative tax rate.

Usage:
    totals = compute_invoice_totals(
        [ChargeLine(Decimal("1000000"), "Vehicle"), ChargeLine(Decimal("50000"), "Discount")],
        tax_enabled=True,
        tax_rate=Decimal("10"),
    )
    totals.total  # Decimal("1045000.00")
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from autoexport_engines.tracer import traced_engine
from autoexport_kernel.db.types import ZERO, round_money
from autoexport_kernel.exceptions import InvalidAmountError

DEFAULT_SUBTRACTING_LABELS: frozenset[str] = frozenset({"deposit", "discount"})

_HUNDRED = Decimal("100")


class ChargeKind(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"


def normalize_label(label: str | None) -> str:
    """Trimmed, lower-cased label; empty string for None."""
    return (label or "").strip().lower()


def resolve_charge_kind(
    label: str | None,
    subtracting_labels: frozenset[str] = DEFAULT_SUBTRACTING_LABELS,
) -> ChargeKind:
    if normalize_label(label) in subtracting_labels:
        return ChargeKind.SUBTRACT
    return ChargeKind.ADD


@dataclass(frozen=True)
class ChargeLine:
    """Engine-side view of a charge: an amount and the charge-type label."""

    amount: Decimal
    label: str | None = None
    description: str = ""


@dataclass(frozen=True)
class InvoiceTotals:
    """
    Computed totals of one invoice.

    Guarantees:
        - total == subtotal + tax.
        - subtotal == additions - deductions.
    """

    subtotal: Decimal
    tax: Decimal
    total: Decimal
    additions: Decimal
    deductions: Decimal
    discount_total: Decimal
    deposit_total: Decimal


def _tax_applies(tax_enabled: bool, tax_rate: Decimal | None) -> bool:
    return bool(tax_enabled) and tax_rate is not None and tax_rate != ZERO


@traced_engine("invoice_totals", "1.0", fingerprint_fields=("tax_enabled", "tax_rate"))
def compute_invoice_totals(
    charges: Iterable[Any],
    *,
    tax_enabled: bool,
    tax_rate: Decimal | None,
    subtracting_labels: frozenset[str] = DEFAULT_SUBTRACTING_LABELS,
) -> InvoiceTotals:
    """
    Compute subtotal, tax and total.

    Args:
        charges: Objects with ``amount`` and ``label`` attributes
            (ChargeLine or the InvoiceCharge ORM row).
        tax_enabled: Invoice tax switch.
        tax_rate: Percentage (10 means 10%), or None.
        subtracting_labels: Normalized labels that deduct.

    Returns:
        InvoiceTotals.
    """
    if tax_rate is not None and tax_rate < ZERO:
        raise InvalidAmountError("tax_rate", tax_rate, "must not be negative")

    additions = ZERO
    deductions = ZERO
    discount_total = ZERO
    deposit_total = ZERO

    for charge in charges:
        amount = Decimal(charge.amount)
        if amount < ZERO:
            raise InvalidAmountError("charge.amount", amount, "must not be negative")
        label = normalize_label(getattr(charge, "label", None))
        if resolve_charge_kind(label, subtracting_labels) is ChargeKind.SUBTRACT:
            deductions += amount
            if label == "discount":
                discount_total += amount
            elif label == "deposit":
                deposit_total += amount
        else:
            additions += amount

    subtotal = additions - deductions
    tax = ZERO
    if _tax_applies(tax_enabled, tax_rate):
        tax = round_money(subtotal * tax_rate / _HUNDRED)

    return InvoiceTotals(
        subtotal=subtotal,
        tax=tax,
        total=subtotal + tax,
        additions=additions,
        deductions=deductions,
        discount_total=discount_total,
        deposit_total=deposit_total,
    )
