"""
SequenceService -- human document numbers derived from the last issued number.

Responsibility:
    Issues the next document number for a prefix (INV-, CONTAINER-2024-,
    FORWARDER-2024-, ...) inside the caller's transaction.

Architecture position:
    Services -- imperative shell infrastructure.  Called by the
    invoice, shared invoice and container invoice services.

Invariants enforced:
    - Next value == max(floor, last + 1) where "last" is the
      lexicographically greatest existing number with the prefix
      (ORDER BY number DESC LIMIT 1).  Mixed digit widths under one prefix
      sort wrongly; padding keeps widths equal in practice.
    - Uniqueness is guaranteed by the document table's unique constraint,
      not by this service.  The insert that loses a race raises
      InvoiceNumberCollisionError via ``guarded_insert``; no retry.

Failure modes:
    - InvoiceNumberCollisionError when the guarded insert hits the unique
      constraint.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from autoexport_engines.numbering import (
    NumberingPolicy,
    build_prefix,
    format_sequence_number,
    next_sequence_value,
)
from autoexport_kernel.exceptions import InvoiceNumberCollisionError
from autoexport_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


def _is_unique_violation(exc: IntegrityError) -> bool:
    # sqlite: "UNIQUE constraint failed"; postgresql: "violates unique constraint"
    return "unique" in str(exc.orig).lower()


class SequenceService:
    """
    Issues document numbers per numbering policy.

    Guarantees:
        - ``next_number`` returns the floor for an empty prefix.
        - ``next_numbers`` reserves ``count`` consecutive numbers from one
          lookup.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT retry on collision; the caller decides.
    """

    def __init__(self, session: Session):
        self._session = session

    def _last_number(self, column: Any, prefix: str) -> str | None:
        return self._session.execute(
            select(column)
            .where(column.startswith(prefix, autoescape=True))
            .order_by(column.desc())
            .limit(1)
        ).scalar_one_or_none()

    def next_number(
        self,
        column: Any,
        policy: NumberingPolicy,
        *,
        year: int | None = None,
        doc_type: str | None = None,
    ) -> str:
        """
        Next number for the document table owning ``column``.

        Args:
            column: The ORM number column, e.g. ``Invoice.invoice_number``.
            policy: Prefix, floor, width and year scoping.
            year: Calendar year for yearly policies.
            doc_type: Document type for ``{type}`` prefixes.
        """
        return self.next_numbers(column, policy, 1, year=year, doc_type=doc_type)[0]

    def next_numbers(
        self,
        column: Any,
        policy: NumberingPolicy,
        count: int,
        *,
        year: int | None = None,
        doc_type: str | None = None,
    ) -> list[str]:
        if count < 1:
            raise ValueError("count must be at least 1")

        prefix = build_prefix(policy, year=year, doc_type=doc_type)
        last = self._last_number(column, prefix)
        start = next_sequence_value(last, prefix, policy.floor)
        numbers = [
            format_sequence_number(prefix, start + i, policy.width) for i in range(count)
        ]
        logger.debug(
            "document_numbers_issued",
            extra={"prefix": prefix, "last_number": last, "numbers": numbers},
        )
        return numbers

    def guarded_insert(self, entity: Any, number: str, entity_type: str) -> None:
        """
        Add and flush ``entity`` inside a savepoint.

        A unique-constraint violation rolls back only the savepoint and is
        raised as InvoiceNumberCollisionError.
        """
        savepoint = self._session.begin_nested()
        try:
            self._session.add(entity)
            self._session.flush()
        except IntegrityError as exc:
            savepoint.rollback()
            if not _is_unique_violation(exc):
                raise
            logger.warning(
                "document_number_collision",
                extra={"invoice_number": number, "entity_type": entity_type},
            )
            raise InvoiceNumberCollisionError(number, entity_type) from exc
        savepoint.commit()
