"""
StatusService -- user and system driven status changes.

Responsibility:
    Applies quotation and order status changes that the state machines
    allow, records each one in the status history, runs the quotation
    expiry sweep and answers history / summary queries.

Architecture position:
    Kernel > Services -- imperative shell.  Each change is one store
    transaction: lock, validate, update, append history.

Invariants enforced:
    - Every status change is paired with exactly one history entry in the
      same transaction.
    - ``converted`` is never set here; only the conversion workflow sets it.
    - The expiry sweep is the only system-initiated transition and it goes
      through the same state machine as user changes.

Failure modes:
    - DocumentNotFoundError: unknown document id.
    - IllegalTransitionError: the state machine rejects the change.
    - ValidationFailedError: a business rule (role, expiry precondition,
      wrong document kind) rejects the change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from quote_kernel.domain.clock import Clock
from quote_kernel.domain.dtos import (
    DocumentData,
    DocumentKind,
    StatusHistoryDraft,
    StatusHistoryRecord,
    StatusType,
    UserRole,
)
from quote_kernel.domain.status import (
    EXPIRABLE_QUOTATION_STATUSES,
    QuotationStatus,
    is_quotation_expired,
    validate_order_transition,
    validate_quotation_transition,
)
from quote_kernel.domain.store import DocumentStore
from quote_kernel.exceptions import DocumentNotFoundError, ValidationFailedError
from quote_kernel.logging_config import LogContext, get_logger
from quote_kernel.services.validation_engine import ValidationEngine

logger = get_logger("services.status")

EXPIRY_REASON = "Validity period ended"


@dataclass(frozen=True)
class StatusChange:
    """An applied status change."""

    document: DocumentData
    old_status: str
    new_status: str
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExpirySweepResult:
    expired_ids: tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.expired_ids)


class StatusService:
    """Status changes, history and the expiry sweep over a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock,
        validation: ValidationEngine | None = None,
        expirable_statuses: Iterable[QuotationStatus | str] | None = None,
        timeout_seconds: float | None = None,
    ):
        self._store = store
        self._clock = clock
        self._validation = validation or ValidationEngine(store)
        statuses = (
            EXPIRABLE_QUOTATION_STATUSES if expirable_statuses is None
            else expirable_statuses
        )
        self._expirable = tuple(sorted(QuotationStatus(s).value for s in statuses))
        self._timeout = timeout_seconds

    # ------------------------------------------------------------------
    # Quotations
    # ------------------------------------------------------------------

    def update_quotation_status(
        self,
        document_id: str,
        new_status: QuotationStatus | str,
        user_id: str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> StatusChange:
        new_status = getattr(new_status, "value", new_status)
        with LogContext.bind(document_id=str(document_id), actor_id=str(user_id)):
            with self._store.transaction(self._timeout) as store:
                document = self._require(store.lock_document(document_id), document_id)
                if not document.is_quotation:
                    raise ValidationFailedError(
                        [f"Document {document.folio} is not a quotation"]
                    )

                transition = validate_quotation_transition(document.status, new_status)
                if not transition.valid:
                    logger.info(
                        "quotation_transition_rejected",
                        extra={
                            "from_status": document.status,
                            "to_status": new_status,
                            "rejection": transition.rejection.value,
                        },
                    )
                    transition.raise_if_invalid()

                now = self._clock.now()
                check = self._validation.validate_quotation_status_change(
                    document, new_status, now,
                )
                if not check:
                    raise ValidationFailedError(check.errors, check.warnings)

                change = self._apply(
                    store, document, StatusType.QUOTATION_STATUS, new_status,
                    user_id, reason, notes,
                )

            logger.info(
                "quotation_status_changed",
                extra={"from_status": change.old_status, "to_status": change.new_status},
            )
            return change

    def expire_stale_quotations(self) -> ExpirySweepResult:
        """
        Move every quotation whose validity has ended to ``expired``.

        Each quotation is re-read under lock in its own transaction, so a
        concurrent approval or conversion is never overwritten.
        """
        with self._store.transaction(self._timeout) as store:
            candidates = store.find_expirable_quotations(self._expirable)

        now = self._clock.now()
        expired: list[str] = []
        for candidate in candidates:
            if not is_quotation_expired(candidate.issue_date, candidate.validity_days, now):
                continue
            with self._store.transaction(self._timeout) as store:
                document = store.lock_document(candidate.id)
                if document is None or document.status not in self._expirable:
                    continue
                transition = validate_quotation_transition(
                    document.status, QuotationStatus.EXPIRED,
                )
                if not transition.valid:
                    continue
                self._apply(
                    store, document, StatusType.QUOTATION_STATUS,
                    QuotationStatus.EXPIRED.value, None, EXPIRY_REASON, None,
                )
            expired.append(candidate.id)
            logger.info(
                "quotation_expired",
                extra={"document_id": candidate.id, "folio": candidate.folio},
            )

        logger.info(
            "expiry_sweep_completed",
            extra={"candidates": len(candidates), "expired": len(expired)},
        )
        return ExpirySweepResult(expired_ids=tuple(expired))

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def update_order_status(
        self,
        document_id: str,
        new_status: str,
        user_id: str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> StatusChange:
        new_status = getattr(new_status, "value", new_status)
        with LogContext.bind(document_id=str(document_id), actor_id=str(user_id)):
            with self._store.transaction(self._timeout) as store:
                document = self._require(store.lock_document(document_id), document_id)
                if not document.is_order:
                    raise ValidationFailedError(
                        [f"Document {document.folio} is not an order"]
                    )

                role = store.get_user_role(user_id)
                check = self._validation.validate_order_status_transition(
                    document.status, new_status, role,
                )
                if not check:
                    if role == UserRole.ADMIN:
                        validate_order_transition(
                            document.status, new_status,
                        ).raise_if_invalid()
                    raise ValidationFailedError(check.errors, check.warnings)

                if check.warnings:
                    logger.warning(
                        "order_status_warnings",
                        extra={
                            "from_status": document.status,
                            "to_status": new_status,
                            "warnings": list(check.warnings),
                        },
                    )

                change = self._apply(
                    store, document, StatusType.ORDER_STATUS, new_status,
                    user_id, reason, notes, check.warnings,
                )

            logger.info(
                "order_status_changed",
                extra={"from_status": change.old_status, "to_status": change.new_status},
            )
            return change

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_status_history(
        self,
        document_id: str,
        status_type: StatusType | str | None = None,
    ) -> list[StatusHistoryRecord]:
        """History entries for a document, newest first."""
        with self._store.transaction(self._timeout) as store:
            self._require(store.get_document(document_id), document_id)
            return store.get_status_history(
                document_id,
                StatusType(status_type) if status_type is not None else None,
            )

    def status_summary(self, kind: DocumentKind | str) -> dict[str, int]:
        """Document count per status of ``kind``; every status is present."""
        with self._store.transaction(self._timeout) as store:
            return store.count_by_status(DocumentKind(kind))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _require(document: DocumentData | None, document_id: str) -> DocumentData:
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        return document

    def _apply(
        self,
        store: DocumentStore,
        document: DocumentData,
        status_type: StatusType,
        new_status: str,
        user_id: str | None,
        reason: str | None,
        notes: str | None,
        warnings: tuple[str, ...] = (),
    ) -> StatusChange:
        store.update_document_status(document.id, new_status)
        store.append_status_history(
            StatusHistoryDraft(
                document_id=document.id,
                status_type=status_type,
                old_status=document.status,
                new_status=new_status,
                changed_by=user_id,
                changed_at=self._clock.now(),
                reason=reason,
                notes=notes,
            )
        )
        updated = store.get_document(document.id)
        return StatusChange(
            document=updated,
            old_status=document.status,
            new_status=new_status,
            warnings=warnings,
        )
