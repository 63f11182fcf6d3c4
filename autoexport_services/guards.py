"""Edit guards shared by the invoice and cost services."""

from __future__ import annotations

from autoexport_kernel.domain.statuses import InvoiceStatus
from autoexport_kernel.exceptions import InvoiceCancelledError, InvoiceLockedError
from autoexport_kernel.models import Invoice


def assert_invoice_editable(invoice: Invoice) -> None:
    """
    Raises:
        InvoiceCancelledError: the invoice is cancelled.
        InvoiceLockedError: the invoice is finalized or locked.
    """
    if invoice.status == InvoiceStatus.CANCELLED:
        raise InvoiceCancelledError(str(invoice.id))
    if invoice.is_locked or invoice.status == InvoiceStatus.FINALIZED:
        raise InvoiceLockedError(str(invoice.id), str(InvoiceStatus(invoice.status).value))
