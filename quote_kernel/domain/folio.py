"""
Folio format rules.

Folios are human-readable, type-prefixed document identifiers: ``COT-``
plus 8 zero-padded digits for quotations and ``ORD-`` plus 8 digits for
orders.  Pure; number allocation happens in the store.
"""

import re

from quote_kernel.domain.dtos import DocumentKind

FOLIO_DIGITS = 8

FOLIO_PREFIXES: dict[DocumentKind, str] = {
    DocumentKind.QUOTATION: "COT",
    DocumentKind.ORDER: "ORD",
}

FOLIO_PATTERNS: dict[DocumentKind, re.Pattern[str]] = {
    DocumentKind.QUOTATION: re.compile(r"^COT-\d{8}$", re.ASCII),
    DocumentKind.ORDER: re.compile(r"^ORD-\d{8}$", re.ASCII),
}

FOLIO_FORMAT_ERRORS: dict[DocumentKind, str] = {
    DocumentKind.QUOTATION: "Quotation folio must follow format COT-XXXXXXXX",
    DocumentKind.ORDER: "Order folio must follow format ORD-XXXXXXXX",
}


def format_folio(kind: DocumentKind, number: int) -> str:
    """
    Render a sequence number as a folio.

    Raises:
        ValueError: If number is not in 1..99999999.
    """
    if number < 1 or number >= 10 ** FOLIO_DIGITS:
        raise ValueError(
            f"Folio number {number} out of range for {FOLIO_DIGITS} digits"
        )
    return f"{FOLIO_PREFIXES[DocumentKind(kind)]}-{number:0{FOLIO_DIGITS}d}"


def is_valid_folio(folio: str, kind: DocumentKind) -> bool:
    return bool(FOLIO_PATTERNS[DocumentKind(kind)].fullmatch(folio or ""))


def folio_number(folio: str) -> int:
    """The numeric part of a well-formed folio."""
    return int(folio.rsplit("-", 1)[1])
