"""
autoexport_services -- Package init and public API.

Responsibility:
    Store-backed orchestration that composes the pure engines
    (autoexport_engines/) with database sessions, settings and the clock.
    This is the only layer that holds sessions and reads settings.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture):
        autoexport_services/ -> autoexport_engines/  (allowed)
        autoexport_services/ -> autoexport_kernel/   (allowed)
        autoexport_services/ -> autoexport_config/   (allowed)
        autoexport_engines/  -> autoexport_services/ (FORBIDDEN)
        autoexport_kernel/   -> autoexport_services/ (FORBIDDEN)

Invariants enforced:
    - Services flush; they never commit or roll back the caller's
      transaction.  Savepoints scope guarded inserts and per-vehicle
      allocation steps.
"""

from autoexport_kernel.logging_config import get_logger

logger = get_logger("services")

from autoexport_services.charge_type_service import ChargeTypeResolver
from autoexport_services.container_invoice_service import (
    ContainerInvoiceResult,
    ContainerInvoiceService,
)
from autoexport_services.cost_allocation_service import (
    AllocationOutcome,
    AllocationReport,
    AllocationSourceType,
    CostAllocationService,
    PairOutcome,
)
from autoexport_services.cost_invoice_service import CostInvoiceService
from autoexport_services.invoice_service import InvoiceService
from autoexport_services.payment_reconciliation_service import (
    PaymentReconciliationService,
    RecalculationSummary,
)
from autoexport_services.sequence_service import SequenceService
from autoexport_services.shared_invoice_service import (
    SharedInvoiceResult,
    SharedInvoiceService,
)
from autoexport_services.transaction_service import TransactionService

__all__ = [
    "AllocationOutcome",
    "AllocationReport",
    "AllocationSourceType",
    "ChargeTypeResolver",
    "ContainerInvoiceResult",
    "ContainerInvoiceService",
    "CostAllocationService",
    "CostInvoiceService",
    "InvoiceService",
    "PairOutcome",
    "PaymentReconciliationService",
    "RecalculationSummary",
    "SequenceService",
    "SharedInvoiceResult",
    "SharedInvoiceService",
    "TransactionService",
]
