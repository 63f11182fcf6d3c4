"""
Module: autoexport_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for
    autoexport_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import autoexport_kernel (domain values, exceptions, logging).
    MUST NOT import autoexport_services or autoexport_config.

Invariants enforced:
    - Purity: engines never read the clock.  The current time is passed in.
    - Decimal-only arithmetic; money is rounded to the cent, half up.
    - Identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped by ``@traced_engine``
    (see ``autoexport_engines.tracer``) and emit AUTOEXPORT_ENGINE_TRACE
    records with the engine name, version, input fingerprint and duration.

Usage:
    from autoexport_engines import allocate_equally, compute_invoice_totals
    from autoexport_engines.payment_status import reconcile_payment
"""

from autoexport_kernel.logging_config import get_logger

logger = get_logger("engines")

from autoexport_engines.allocation import (
    AllocationResult,
    VehicleShare,
    allocate_equally,
    explicit_allocation,
)
from autoexport_engines.charges import (
    DEFAULT_SUBTRACTING_LABELS,
    ChargeKind,
    ChargeLine,
    InvoiceTotals,
    compute_invoice_totals,
    normalize_label,
    resolve_charge_kind,
)
from autoexport_engines.numbering import (
    NumberingPolicy,
    build_prefix,
    format_sequence_number,
    next_sequence_value,
    parse_sequence_suffix,
)
from autoexport_engines.overdue import is_overdue, presented_payment_status
from autoexport_engines.payment_status import (
    DEFAULT_TOLERANCE,
    PaymentDecision,
    derive_payment_status,
    is_paid_in_full,
    reconcile_payment,
)
from autoexport_engines.profitability import (
    ProfitMetrics,
    compute_profit_metrics,
    seed_metrics,
)
from autoexport_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Allocation
    "AllocationResult",
    "VehicleShare",
    "allocate_equally",
    "explicit_allocation",
    # Charges
    "ChargeKind",
    "ChargeLine",
    "DEFAULT_SUBTRACTING_LABELS",
    "InvoiceTotals",
    "compute_invoice_totals",
    "normalize_label",
    "resolve_charge_kind",
    # Numbering
    "NumberingPolicy",
    "build_prefix",
    "format_sequence_number",
    "next_sequence_value",
    "parse_sequence_suffix",
    # Overdue
    "is_overdue",
    "presented_payment_status",
    # Payment status
    "DEFAULT_TOLERANCE",
    "PaymentDecision",
    "derive_payment_status",
    "is_paid_in_full",
    "reconcile_payment",
    # Profitability
    "ProfitMetrics",
    "compute_profit_metrics",
    "seed_metrics",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
