"""Selectors for the quotation kernel (read side)."""

from quote_kernel.selectors.document_selector import DocumentSelector

__all__ = [
    "DocumentSelector",
]
