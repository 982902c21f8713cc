"""
Typed exception hierarchy for the quotation lifecycle kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to react to a failure by its type and a stable code,
never by parsing a message string:

    try:
        status_service.update_quotation_status(doc_id, "approved", user_id)
    except IllegalTransitionError as e:
        return api_response(code=e.code, reason=e.reason)

Every exception has:
  1. a TYPED class (catch by type, not message)
  2. a ``code`` class attribute (machine-readable, API-safe)
  3. structured attributes carrying the context of the failure

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    QuoteKernelError (base)
    |
    +-- CalculationError
    |   +-- InvalidAmountError
    |   +-- InvalidInputError
    |
    +-- ValidationFailedError
    |
    +-- TransitionError
    |   +-- IllegalTransitionError
    |
    +-- ConflictError
    |   +-- FolioGenerationFailedError
    |   +-- DuplicateConversionError
    |
    +-- IntegrityViolationError
    |   +-- TotalsMismatchError
    |
    +-- ImmutabilityViolationError
    |
    +-- StoreError
        +-- StoreUnavailableError
        +-- DocumentNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                     | When Raised
-------------|--------------------------|------------------------------------------
Calculation  | INVALID_AMOUNT           | NaN, infinity or non-numeric amount
             | INVALID_INPUT            | Negative price, quantity, rate or margin
-------------|--------------------------|------------------------------------------
Validation   | VALIDATION_FAILED        | Aggregated business-rule failures
-------------|--------------------------|------------------------------------------
Transition   | ILLEGAL_TRANSITION       | State machine rejected a status change
-------------|--------------------------|------------------------------------------
Conflict     | FOLIO_GENERATION_FAILED  | Reserved folio collides or is malformed
             | DUPLICATE_CONVERSION     | Quotation already has an order (retry-safe)
-------------|--------------------------|------------------------------------------
Integrity    | INTEGRITY_VIOLATION      | Stored data contradicts an invariant
             | TOTALS_MISMATCH          | Recomputed totals differ from stored totals
-------------|--------------------------|------------------------------------------
Immutability | IMMUTABILITY_VIOLATION   | Edit of history or a converted quotation
-------------|--------------------------|------------------------------------------
Store        | STORE_UNAVAILABLE        | Timeout / lost connection (transient)
             | DOCUMENT_NOT_FOUND       | Document ID does not exist

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CONFLICTS ARE RETRYABLE OR ALREADY DONE:

    except DuplicateConversionError as e:
        order = store.find_order_by_quotation_id(e.quotation_id)

2. INTEGRITY VIOLATIONS ARE FATAL FOR THE OPERATION:

    except TotalsMismatchError as e:
        alert_operations(e)   # data corruption, never auto-correct

3. STORE UNAVAILABLE MEANS "UNKNOWN":

    A StoreUnavailableError never implies success or failure of the attempt.
    Retry the whole idempotent operation with backoff.
===============================================================================
"""


class QuoteKernelError(Exception):
    """
    Base exception for all kernel errors.

    All subclasses must carry a ``code`` class attribute.
    """

    code: str = "QUOTE_KERNEL_ERROR"


# Calculation exceptions


class CalculationError(QuoteKernelError):
    """Base exception for monetary calculation errors."""

    code: str = "CALCULATION_ERROR"


class InvalidAmountError(CalculationError):
    """Amount is not a finite, well-formed number."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: object):
        self.value = repr(value)
        super().__init__(f"Amount must be a valid finite number, got {value!r}")


class InvalidInputError(CalculationError):
    """A calculation input is outside its allowed domain."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(reason)


# Validation exceptions


class ValidationFailedError(QuoteKernelError):
    """
    One or more business rules rejected an operation.

    Carries every failure at once so a caller can show all problems.
    No state change has been applied when this is raised.
    """

    code: str = "VALIDATION_FAILED"

    def __init__(self, errors: list[str] | tuple[str, ...], warnings: list[str] | tuple[str, ...] = ()):
        self.errors = list(errors)
        self.warnings = list(warnings)
        super().__init__("; ".join(self.errors) or "Validation failed")


# Transition exceptions


class TransitionError(QuoteKernelError):
    """Base exception for status transition errors."""

    code: str = "TRANSITION_ERROR"


class IllegalTransitionError(TransitionError):
    """The state machine does not permit the requested status change."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(reason)


# Conflict exceptions


class ConflictError(QuoteKernelError):
    """Base exception for conflicts that are resolved by retry or idempotency."""

    code: str = "CONFLICT"


class FolioGenerationFailedError(ConflictError):
    """
    The store could not guarantee a unique folio.

    Callers must retry with backoff; never assume the folio was reserved.
    """

    code: str = "FOLIO_GENERATION_FAILED"

    def __init__(self, kind: str, folio: str | None, reason: str):
        self.kind = kind
        self.folio = folio
        self.reason = reason
        super().__init__(f"Folio generation failed for {kind}: {reason}")


class DuplicateConversionError(ConflictError):
    """An order already references this quotation."""

    code: str = "DUPLICATE_CONVERSION"

    def __init__(self, quotation_id: str):
        self.quotation_id = quotation_id
        super().__init__(f"An order already exists for quotation {quotation_id}")


# Integrity exceptions


class IntegrityViolationError(QuoteKernelError):
    """Stored data contradicts a kernel invariant. Never auto-corrected."""

    code: str = "INTEGRITY_VIOLATION"


class TotalsMismatchError(IntegrityViolationError):
    """Totals recomputed from line items differ from the stored totals."""

    code: str = "TOTALS_MISMATCH"

    def __init__(self, document_id: str, field: str, expected: str, actual: str):
        self.document_id = document_id
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Totals mismatch on document {document_id}: "
            f"{field} recomputed={expected}, stored={actual}"
        )


# Immutability exceptions


class ImmutabilityViolationError(QuoteKernelError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Store exceptions


class StoreError(QuoteKernelError):
    """Base exception for store adapter errors."""

    code: str = "STORE_ERROR"


class StoreUnavailableError(StoreError):
    """
    The store timed out or the connection was lost.

    Transient. The outcome of the interrupted call is unknown.
    """

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        message = f"Store unavailable during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DocumentNotFoundError(StoreError):
    """Document with the given ID does not exist."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")
