"""
Module: autoexport_engines.numbering
Responsibility:
    Pure helpers behind human document numbers: prefix construction,
    suffix parsing, next value with a floor, zero-padded formatting.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The store lookup of the
    last issued number lives in autoexport_services.sequence_service.

Invariants enforced:
    - next value == max(floor, last + 1); floor when nothing was issued or
      the last number's suffix does not parse.
    - Padding widens, never truncates: width 3 formats 1000 as "1000".
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NumberingPolicy:
    """
    How one document family is numbered.

    ``prefix`` may contain ``{type}`` (shared invoices) which is replaced by
    the upper-cased document type.  When ``yearly`` is set the four-digit
    year and a dash follow the prefix: ``CONTAINER-2024-``.
    """

    prefix: str
    floor: int = 1
    width: int = 0
    yearly: bool = False

    def __post_init__(self) -> None:
        if self.floor < 1:
            raise ValueError("floor must be at least 1")
        if self.width < 0:
            raise ValueError("width cannot be negative")


def build_prefix(policy: NumberingPolicy, year: int | None = None, doc_type: str | None = None) -> str:
    prefix = policy.prefix
    if "{type}" in prefix:
        if not doc_type:
            raise ValueError("document type required for this numbering policy")
        prefix = prefix.replace("{type}", doc_type.strip().upper())
    if policy.yearly:
        if year is None:
            raise ValueError("year required for a yearly numbering policy")
        prefix = f"{prefix}{year:04d}-"
    return prefix


def parse_sequence_suffix(number: str, prefix: str) -> int | None:
    """Integer after ``prefix``, or None when it is absent or not all digits."""
    if not number.startswith(prefix):
        return None
    suffix = number[len(prefix):]
    if not suffix.isdigit():
        return None
    return int(suffix)


def next_sequence_value(last_number: str | None, prefix: str, floor: int = 1) -> int:
    if last_number is None:
        return floor
    parsed = parse_sequence_suffix(last_number, prefix)
    if parsed is None:
        return floor
    return max(floor, parsed + 1)


def format_sequence_number(prefix: str, value: int, width: int = 0) -> str:
    if width:
        return f"{prefix}{value:0{width}d}"
    return f"{prefix}{value}"
