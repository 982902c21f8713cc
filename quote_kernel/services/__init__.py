"""Services for the quotation kernel (write side)."""

from quote_kernel.services.conversion_orchestrator import (
    ConversionOrchestrator,
    ConversionResult,
    ConversionStatus,
    RetryPolicy,
)
from quote_kernel.services.document_store import SqlDocumentStore
from quote_kernel.services.folio_counter_service import FolioCounterService
from quote_kernel.services.folio_generator import FolioGenerator
from quote_kernel.services.quotation_service import QuotationService
from quote_kernel.services.status_service import (
    ExpirySweepResult,
    StatusChange,
    StatusService,
)
from quote_kernel.services.validation_engine import ValidationEngine

__all__ = [
    "ConversionOrchestrator",
    "ConversionResult",
    "ConversionStatus",
    "ExpirySweepResult",
    "FolioCounterService",
    "FolioGenerator",
    "QuotationService",
    "RetryPolicy",
    "SqlDocumentStore",
    "StatusChange",
    "StatusService",
    "ValidationEngine",
]
