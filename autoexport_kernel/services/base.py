"""
BaseService -- common constructor and session contract for store-backed services.

Responsibility:
    Every service receives a SQLAlchemy ``Session`` and an injected Clock.
    Services persist with ``session.flush()`` only; the caller (route
    handler, CLI, test) owns ``commit()`` / ``rollback()``.  Savepoints
    (``session.begin_nested()``) are allowed for guarded sub-steps.

Failure modes:
    - A subclass that calls ``session.commit()`` breaks the atomicity of
      multi-step operations such as "create shared invoice, then apply it
      to every vehicle".
"""

from abc import ABC

from sqlalchemy.orm import Session

from autoexport_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for ledger services.

    Guarantees:
        - Never calls ``session.commit()`` or ``session.rollback()`` on the
          caller's transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
