"""
Money arithmetic shared by the engines and services.

Amounts are Decimal with two places, rounded ROUND_HALF_UP.  Column types
come from ``Base.type_annotation_map`` in ``autoexport_kernel.db.base``.
"""

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")
ZERO = Decimal("0")


def round_money(value: Decimal) -> Decimal:
    """Round to two decimal places, half up."""
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)
