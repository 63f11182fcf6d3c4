"""
Module: autoexport_engines.profitability
Responsibility:
    Derive profit, margin and ROI of an invoice from its revenue and cost.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - profit == total_revenue - total_cost.
    - margin == profit / revenue x 100 when revenue > 0, else 0.
    - roi == profit / cost x 100 when cost > 0, else 0.
    - Every figure is rounded to the cent, half up.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from autoexport_engines.tracer import traced_engine
from autoexport_kernel.db.types import ZERO, round_money

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ProfitMetrics:
    total_revenue: Decimal
    total_cost: Decimal
    profit: Decimal
    margin: Decimal
    roi: Decimal


@traced_engine("profitability", "1.0", fingerprint_fields=("total_revenue", "total_cost"))
def compute_profit_metrics(*, total_revenue: Decimal, total_cost: Decimal) -> ProfitMetrics:
    revenue = round_money(total_revenue)
    cost = round_money(total_cost)
    profit = revenue - cost

    margin = round_money(profit / revenue * _HUNDRED) if revenue > ZERO else round_money(ZERO)
    roi = round_money(profit / cost * _HUNDRED) if cost > ZERO else round_money(ZERO)

    return ProfitMetrics(
        total_revenue=revenue,
        total_cost=cost,
        profit=profit,
        margin=margin,
        roi=roi,
    )


def seed_metrics(total_revenue: Decimal) -> ProfitMetrics:
    """Figures of a freshly materialized cost invoice: no cost booked yet."""
    revenue = round_money(total_revenue)
    return ProfitMetrics(
        total_revenue=revenue,
        total_cost=round_money(ZERO),
        profit=revenue,
        margin=round_money(_HUNDRED),
        roi=round_money(ZERO),
    )
