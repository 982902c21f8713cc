"""
ConversionOrchestrator -- approved quotation to order, exactly once.

Responsibility:
    Drives the whole conversion of a quotation into an order: idempotency
    check, validation, folio reservation, item snapshot, totals
    verification, the writes and their history entries.  Owns the retry
    policy for transient failures.

Architecture position:
    Kernel > Services -- imperative shell, owns the transaction boundary
    of a conversion.  Delegates rules to ValidationEngine, numbering to
    FolioGenerator, arithmetic to the calculation engine and persistence
    to the DocumentStore.

Conversion flow (one store transaction per attempt):
    convert(quotation_id, user_id)
      1. Lock the quotation row
      2. Existing order for the quotation?  -> ALREADY_CONVERTED (no-op),
         or VALIDATION_FAILED when the caller is not an admin
      3. ValidationEngine.validate_pre_conversion -> VALIDATION_FAILED
      4. Reserve an ORD- folio
      5. Snapshot quotation items (same price, rate, quantity; new ids)
      6. Recompute totals; disagreement with the header aborts
      7. Insert order + items, flip quotation to ``converted``
      8. History: quotation approved->converted, order None->pending
      9. Commit

Invariants enforced:
    - At most one order per quotation.  The row lock serializes
      converters; UNIQUE(quotation_id) is the backstop.  A lost race rolls
      back and re-runs, and the re-run reports the winner.
    - Only admins learn about existing orders through ``convert``.
    - Order totals equal totals recomputed from the snapshot items.
    - Either every write of a conversion is committed or none is.

Failure modes:
    - TotalsMismatchError: stored quotation totals disagree with its items.
      Logged at CRITICAL, rolled back, never retried.
    - StoreUnavailableError / FolioGenerationFailedError: retried with
      exponential backoff; re-raised once attempts are exhausted.

Usage:
    orchestrator = ConversionOrchestrator(store, clock)
    result = orchestrator.convert(quotation_id, admin_id)
    if result.created:
        notify(result.order.folio)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable
from uuid import uuid4

from quote_kernel.domain.calculations import DocumentTotals, calculate_document_totals
from quote_kernel.domain.clock import Clock
from quote_kernel.domain.dtos import (
    DocumentData,
    DocumentHeader,
    DocumentKind,
    StatusHistoryDraft,
    StatusType,
    ValidationResult,
)
from quote_kernel.domain.status import OrderStatus, QuotationStatus
from quote_kernel.domain.store import DocumentStore
from quote_kernel.exceptions import (
    DuplicateConversionError,
    FolioGenerationFailedError,
    StoreUnavailableError,
    TotalsMismatchError,
)
from quote_kernel.logging_config import LogContext, get_logger
from quote_kernel.services.folio_generator import FolioGenerator
from quote_kernel.services.validation_engine import ValidationEngine

logger = get_logger("services.conversion")


class ConversionStatus(str, Enum):
    """Outcome of a conversion request."""

    CONVERTED = "converted"
    ALREADY_CONVERTED = "already_converted"
    VALIDATION_FAILED = "validation_failed"


@dataclass(frozen=True)
class ConversionResult:
    """Result of ConversionOrchestrator.convert."""

    status: ConversionStatus
    order: DocumentData | None = None
    message: str | None = None
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        """True when the quotation now has an order, created by this call or not."""
        return self.status in (
            ConversionStatus.CONVERTED,
            ConversionStatus.ALREADY_CONVERTED,
        )

    @property
    def created(self) -> bool:
        return self.status == ConversionStatus.CONVERTED


@dataclass(frozen=True)
class RetryPolicy:
    """Attempts and backoff for transient conversion failures."""

    max_attempts: int = 3
    base_backoff_seconds: float = 0.05
    max_backoff_seconds: float = 1.0
    store_timeout_seconds: float | None = 10.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_backoff_seconds < 0 or self.max_backoff_seconds < 0:
            raise ValueError("backoff must not be negative")

    @classmethod
    def from_config(cls, config: Any) -> RetryPolicy:
        """Build from a ``ConversionConfig`` (or anything with its fields)."""
        return cls(
            max_attempts=config.max_attempts,
            base_backoff_seconds=config.base_backoff_seconds,
            max_backoff_seconds=config.max_backoff_seconds,
            store_timeout_seconds=config.store_timeout_seconds,
        )

    def backoff(self, attempt: int) -> float:
        """Delay before retrying after failed attempt number ``attempt`` (1-based)."""
        return min(self.max_backoff_seconds, self.base_backoff_seconds * 2 ** (attempt - 1))


_RETRYABLE = (StoreUnavailableError, FolioGenerationFailedError)


def _already_converted(order: DocumentData) -> ConversionResult:
    logger.info(
        "already_converted",
        extra={"order_id": order.id, "order_folio": order.folio},
    )
    return ConversionResult(
        status=ConversionStatus.ALREADY_CONVERTED,
        order=order,
        message=f"Order {order.folio} already exists for this quotation",
    )


def _validation_failed(validation: ValidationResult) -> ConversionResult:
    return ConversionResult(
        status=ConversionStatus.VALIDATION_FAILED,
        message="Quotation cannot be converted to an order",
        errors=validation.errors,
        warnings=validation.warnings,
    )


class ConversionOrchestrator:
    """
    Converts approved quotations into orders.

    Contract:
        ``convert`` is idempotent: calling it again for a converted
        quotation returns ALREADY_CONVERTED with the existing order, and
        concurrent callers observe exactly one CONVERTED.

    Non-goals:
        - Does NOT notify anyone.  Callers react to the result.
    """

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock,
        validation: ValidationEngine | None = None,
        folio_generator: FolioGenerator | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._store = store
        self._clock = clock
        self._validation = validation or ValidationEngine(store)
        self._folios = folio_generator or FolioGenerator(store)
        self._policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    def convert(self, quotation_id: str, user_id: str) -> ConversionResult:
        """
        Convert ``quotation_id`` into an order on behalf of ``user_id``.

        Raises:
            TotalsMismatchError: Quotation totals disagree with its items.
            StoreUnavailableError: Store still unreachable after all attempts.
            FolioGenerationFailedError: No usable folio after all attempts.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            document_id=str(quotation_id),
            actor_id=str(user_id),
        ):
            logger.info("conversion_started")
            t0 = time.monotonic()
            attempt = 0

            while True:
                attempt += 1
                try:
                    result = self._attempt(quotation_id, user_id)
                except DuplicateConversionError:
                    # Lost the race to another converter.  The next attempt
                    # sees the winning order at the idempotency check; with
                    # no attempts left, a fresh read reports it instead.
                    logger.info("conversion_race_lost", extra={"attempt": attempt})
                    if attempt < self._policy.max_attempts:
                        continue
                    result = self._resolve_lost_race(quotation_id, user_id)
                    if result is None:
                        raise
                except _RETRYABLE as exc:
                    if attempt >= self._policy.max_attempts:
                        logger.error(
                            "conversion_retries_exhausted",
                            extra={"attempts": attempt, "error_code": exc.code},
                        )
                        raise
                    delay = self._policy.backoff(attempt)
                    logger.warning(
                        "conversion_retry",
                        extra={
                            "attempt": attempt,
                            "error_code": exc.code,
                            "delay_seconds": delay,
                        },
                    )
                    self._sleep(delay)
                    continue

                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.info(
                    "conversion_completed",
                    extra={
                        "status": result.status.value,
                        "order_folio": result.order.folio if result.order else None,
                        "attempts": attempt,
                        "duration_ms": duration_ms,
                    },
                )
                return result

    def _attempt(self, quotation_id: str, user_id: str) -> ConversionResult:
        with self._store.transaction(self._policy.store_timeout_seconds) as store:
            quotation = store.lock_document(quotation_id)

            if quotation is not None and quotation.is_quotation:
                existing = store.find_order_by_quotation_id(quotation.id)
                if existing is not None:
                    denied = self._validation.validate_conversion_actor(user_id)
                    if not denied:
                        return _validation_failed(denied)
                    return _already_converted(existing)

            validation = self._validation.validate_pre_conversion(quotation_id, user_id)
            if not validation:
                return _validation_failed(validation)

            folio = self._folios.generate(DocumentKind.ORDER)
            items = [item.to_draft() for item in quotation.items]
            totals = calculate_document_totals(items, quotation.discount)
            self._verify_totals(quotation, totals)

            now = self._clock.now()
            order = store.insert_order_with_items(
                DocumentHeader(
                    folio=folio,
                    kind=DocumentKind.ORDER,
                    status=OrderStatus.PENDING.value,
                    company_id=quotation.company_id,
                    issue_date=now.date(),
                    subtotal=totals.subtotal,
                    tax_amount=totals.tax_amount,
                    discount=totals.discount,
                    total=totals.total,
                    created_by=user_id,
                    contact_name=quotation.contact_name,
                    contact_email=quotation.contact_email,
                    contact_phone=quotation.contact_phone,
                    quotation_id=quotation.id,
                    notes=quotation.notes,
                ),
                items,
            )
            store.update_document_status(quotation.id, QuotationStatus.CONVERTED.value)
            store.append_status_history(
                StatusHistoryDraft(
                    document_id=quotation.id,
                    status_type=StatusType.QUOTATION_STATUS,
                    old_status=quotation.status,
                    new_status=QuotationStatus.CONVERTED.value,
                    changed_by=user_id,
                    changed_at=now,
                    reason=f"Converted to order {folio}",
                )
            )
            store.append_status_history(
                StatusHistoryDraft(
                    document_id=order.id,
                    status_type=StatusType.ORDER_STATUS,
                    old_status=None,
                    new_status=OrderStatus.PENDING.value,
                    changed_by=user_id,
                    changed_at=now,
                    reason=f"Created from quotation {quotation.folio}",
                )
            )

        return ConversionResult(
            status=ConversionStatus.CONVERTED,
            order=order,
            message=f"Quotation {quotation.folio} converted to order {folio}",
            warnings=validation.warnings,
        )

    def _resolve_lost_race(
        self, quotation_id: str, user_id: str,
    ) -> ConversionResult | None:
        """Report the winning order when no attempts are left to re-run."""
        with self._store.transaction(self._policy.store_timeout_seconds) as store:
            existing = store.find_order_by_quotation_id(quotation_id)
            if existing is None:
                return None
            denied = self._validation.validate_conversion_actor(user_id)
            if not denied:
                return _validation_failed(denied)
            return _already_converted(existing)

    def _verify_totals(self, quotation: DocumentData, totals: DocumentTotals) -> None:
        for field in ("subtotal", "tax_amount", "total"):
            expected = getattr(totals, field)
            actual = getattr(quotation, field)
            if expected != actual:
                logger.critical(
                    "totals_mismatch",
                    extra={
                        "quotation_id": quotation.id,
                        "field": field,
                        "recomputed": str(expected),
                        "stored": str(actual),
                    },
                )
                raise TotalsMismatchError(
                    quotation.id, field, str(expected), str(actual),
                )
