"""
ChargeTypeResolver -- get-or-create ChargeType rows from free-text labels.

Responsibility:
    Resolve a submitted label ("Deposit", " deposit ", "Vehicle price") to a
    ChargeType row.  Matching is case-insensitive on the trimmed label; a
    blank label resolves to the default type ("CUSTOM").  Lookups are
    memoized for the lifetime of one resolver, so an invoice edit with
    twenty "Freight" lines issues one query.

Failure modes:
    - A concurrent insert of the same label hits uq_charge_types_name; the
      savepoint is rolled back and the winner's row is re-read.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from autoexport_engines.charges import normalize_label
from autoexport_kernel.logging_config import get_logger
from autoexport_kernel.models import ChargeType

logger = get_logger("services.charge_types")


class ChargeTypeResolver:
    def __init__(self, session: Session, default_label: str = "CUSTOM"):
        self._session = session
        self._default_label = default_label
        self._cache: dict[str, ChargeType] = {}

    def _find(self, key: str) -> ChargeType | None:
        return self._session.execute(
            select(ChargeType).where(func.lower(ChargeType.name) == key).limit(1)
        ).scalar_one_or_none()

    def resolve(self, label: str | None) -> ChargeType:
        display = (label or "").strip() or self._default_label
        key = normalize_label(display)

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        charge_type = self._find(key)
        if charge_type is None:
            savepoint = self._session.begin_nested()
            try:
                charge_type = ChargeType(name=display)
                self._session.add(charge_type)
                self._session.flush()
                savepoint.commit()
                logger.info("charge_type_created", extra={"charge_type": display})
            except IntegrityError:
                savepoint.rollback()
                logger.debug("charge_type_create_race", extra={"charge_type": display})
                charge_type = self._find(key)
                if charge_type is None:
                    raise

        self._cache[key] = charge_type
        return charge_type

    @property
    def cache_size(self) -> int:
        return len(self._cache)
