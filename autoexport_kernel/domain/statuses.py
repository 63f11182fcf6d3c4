"""
Status vocabularies shared by models, engines and services.

All enums are ``str`` enums so they compare equal to the raw strings
stored in the database.
"""

from enum import Enum


class InvoiceStatus(str, Enum):
    """Approval workflow of a customer invoice.

    Contract: DRAFT -> PENDING_APPROVAL -> APPROVED -> FINALIZED.
    A rejected submission returns to DRAFT; unlocking a finalized invoice
    returns it to APPROVED.
    CANCELLED is reachable from any non-final state and is terminal.
    """

    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    FINALIZED = "FINALIZED"
    CANCELLED = "CANCELLED"


ALLOWED_STATUS_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset(
        {InvoiceStatus.PENDING_APPROVAL, InvoiceStatus.CANCELLED}
    ),
    InvoiceStatus.PENDING_APPROVAL: frozenset(
        {InvoiceStatus.DRAFT, InvoiceStatus.APPROVED, InvoiceStatus.CANCELLED}
    ),
    InvoiceStatus.APPROVED: frozenset(
        {InvoiceStatus.FINALIZED, InvoiceStatus.CANCELLED}
    ),
    InvoiceStatus.FINALIZED: frozenset(
        {InvoiceStatus.APPROVED, InvoiceStatus.CANCELLED}
    ),
    InvoiceStatus.CANCELLED: frozenset(),
}


class PaymentStatus(str, Enum):
    """Payment state of an invoice.

    OVERDUE is never stored by the reconciliation write path; it is a
    presentation derived from due_date at read time.
    """

    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class TransactionDirection(str, Enum):
    INCOMING = "INCOMING"
    OUTGOING = "OUTGOING"


class TransactionType(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    WISE = "WISE"
    PAYPAL = "PAYPAL"
    CARD = "CARD"
    OTHER = "OTHER"


class ShippingStage(str, Enum):
    """Logistics stage of a vehicle, in pipeline order."""

    PURCHASE = "PURCHASE"
    TRANSPORT = "TRANSPORT"
    REPAIR = "REPAIR"
    DOCUMENTS = "DOCUMENTS"
    BOOKING = "BOOKING"
    SHIPPED = "SHIPPED"
    DHL = "DHL"


class SharedInvoiceType(str, Enum):
    """Well-known shared invoice types.  Other free-text types are allowed."""

    CONTAINER = "CONTAINER"
    FORWARDER = "FORWARDER"
