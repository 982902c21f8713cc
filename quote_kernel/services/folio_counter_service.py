"""
FolioCounterService -- folio number allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing numbers per document kind.  Uses the
    ``folio_counters`` table with row-level locking (``SELECT ... FOR
    UPDATE``) so concurrent reservations never share a number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by the SQL document store's ``reserve_folio``.

Invariants enforced:
    - The SQL aggregate-max-plus-one anti-pattern is FORBIDDEN.  The locked
      counter row is the sole source of truth for the next number.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the number.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and re-read under lock).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quote_kernel.logging_config import get_logger
from quote_kernel.models.folio_counter import FolioCounter

logger = get_logger("services.folio_counter")


class FolioCounterService:
    """
    Transactional per-kind counters.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT format folios; see ``domain/folio.py``.
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, kind: str) -> FolioCounter | None:
        return self._session.execute(
            select(FolioCounter)
            .where(FolioCounter.kind == kind)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, kind: str) -> int:
        """
        Lock the counter row for ``kind`` (creating it on first use),
        increment it, and return the new value.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously committed for this kind.
            - The counter row stays locked until the transaction ends.
        """
        counter = self._locked_counter(kind)

        if counter is None:
            # First use.  Another transaction may create it at the same time,
            # so insert under a savepoint and fall back to the winner's row.
            savepoint = self._session.begin_nested()
            try:
                counter = FolioCounter(kind=kind, last_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug("folio_number_allocated", extra={"kind": kind, "value": 1})
                return 1
            except IntegrityError:
                logger.debug("folio_counter_race_retry", extra={"kind": kind})
                savepoint.rollback()
                counter = self._locked_counter(kind)
                if counter is None:
                    raise

        counter.last_value += 1
        self._session.flush()
        logger.debug(
            "folio_number_allocated",
            extra={"kind": kind, "value": counter.last_value},
        )
        return counter.last_value

    def current_value(self, kind: str) -> int | None:
        """Last allocated value without incrementing, or None if unused."""
        return self._session.execute(
            select(FolioCounter.last_value).where(FolioCounter.kind == kind)
        ).scalar_one_or_none()

    def reset(self, kind: str, value: int = 0) -> None:
        """
        Set a counter to a specific value.

        WARNING: Only for tests and data migrations.  Setting a counter
        below an existing folio makes the next reservation collide.
        """
        counter = self._locked_counter(kind)
        if counter is None:
            self._session.add(FolioCounter(kind=kind, last_value=value))
        else:
            counter.last_value = value
        self._session.flush()
