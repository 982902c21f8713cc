"""ORM models for the quotation kernel."""

from quote_kernel.models.document import DocumentItemModel, DocumentModel
from quote_kernel.models.folio_counter import FolioCounter
from quote_kernel.models.reference import CompanyModel, TaxConfigurationModel, UserModel
from quote_kernel.models.status_history import StatusHistoryModel

__all__ = [
    "CompanyModel",
    "DocumentItemModel",
    "DocumentModel",
    "FolioCounter",
    "StatusHistoryModel",
    "TaxConfigurationModel",
    "UserModel",
]
