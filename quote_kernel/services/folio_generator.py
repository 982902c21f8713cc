"""
FolioGenerator -- human-readable document identifiers.

Responsibility:
    Produce the next ``COT-XXXXXXXX`` / ``ORD-XXXXXXXX`` folio for a
    document kind and verify it is safe to use before handing it out.

Architecture position:
    Kernel > Services -- imperative shell.  Numbering itself is owned by
    the store (locked counter row); this service only formats, checks and
    logs.

Invariants enforced:
    - Folios come from a locked per-kind counter, never from MAX()+1.
    - A returned folio matches the kind's format and is not used by any
      stored document.
    - A number found in use (e.g. a folio imported from another system)
      is skipped; the counter moves past it within the same transaction.

Failure modes:
    - FolioGenerationFailedError: the reserved folio is malformed, or
      ``max_collisions`` consecutive numbers were already taken.
    - StoreUnavailableError: propagated from the store.
"""

from __future__ import annotations

from quote_kernel.domain.dtos import DocumentKind
from quote_kernel.domain.folio import FOLIO_FORMAT_ERRORS, is_valid_folio
from quote_kernel.domain.store import DocumentStore
from quote_kernel.exceptions import FolioGenerationFailedError
from quote_kernel.logging_config import get_logger

logger = get_logger("services.folio_generator")

DEFAULT_MAX_COLLISIONS = 5


class FolioGenerator:
    """Reserve folios through a DocumentStore."""

    def __init__(self, store: DocumentStore, max_collisions: int = DEFAULT_MAX_COLLISIONS):
        if max_collisions < 1:
            raise ValueError("max_collisions must be at least 1")
        self._store = store
        self._max_collisions = max_collisions

    def generate(self, kind: DocumentKind | str) -> str:
        """
        Reserve and return the next free folio for ``kind``.

        Must run inside the caller's store transaction so the reservation
        rolls back with it.
        """
        kind = DocumentKind(kind)

        for attempt in range(1, self._max_collisions + 1):
            folio = self._store.reserve_folio(kind)

            if not is_valid_folio(folio, kind):
                logger.error(
                    "folio_malformed",
                    extra={"kind": kind.value, "folio": folio},
                )
                raise FolioGenerationFailedError(
                    kind.value, folio, FOLIO_FORMAT_ERRORS[kind],
                )

            existing_kind = self._store.find_folio_kind(folio)
            if existing_kind is None:
                logger.info("folio_reserved", extra={"kind": kind.value, "folio": folio})
                return folio

            logger.warning(
                "folio_collision",
                extra={
                    "kind": kind.value,
                    "folio": folio,
                    "existing_kind": existing_kind.value,
                    "attempt": attempt,
                },
            )

        raise FolioGenerationFailedError(
            kind.value, folio, f"Folio {folio} already exists for {existing_kind.value}",
        )
