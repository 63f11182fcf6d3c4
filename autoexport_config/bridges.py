"""
Bridges from settings dataclasses to engine inputs.

The engines never import ``autoexport_config``; services translate through
these functions.
"""

from __future__ import annotations

from autoexport_config.schema import NumberingDef
from autoexport_engines.numbering import NumberingPolicy


def numbering_policy(defn: NumberingDef) -> NumberingPolicy:
    return NumberingPolicy(
        prefix=defn.prefix,
        floor=defn.floor,
        width=defn.width,
        yearly=defn.yearly,
    )
