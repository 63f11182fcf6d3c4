"""Invoice totals from a persisted Invoice row, using the configured charge labels."""

from __future__ import annotations

from autoexport_config.schema import ChargeSettings
from autoexport_engines.charges import InvoiceTotals, compute_invoice_totals
from autoexport_kernel.models import Invoice


def totals_for_invoice(invoice: Invoice, charges: ChargeSettings) -> InvoiceTotals:
    return compute_invoice_totals(
        invoice.charges,
        tax_enabled=invoice.tax_enabled,
        tax_rate=invoice.tax_rate,
        subtracting_labels=charges.subtracting_labels,
    )
