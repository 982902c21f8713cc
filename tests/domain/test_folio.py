"""Tests for folio formatting and validation."""

import pytest

from quote_kernel.domain.dtos import DocumentKind
from quote_kernel.domain.folio import folio_number, format_folio, is_valid_folio


class TestFolioFormat:

    def test_quotation_folio(self):
        assert format_folio(DocumentKind.QUOTATION, 1) == "COT-00000001"

    def test_order_folio(self):
        assert format_folio(DocumentKind.ORDER, 12345678) == "ORD-12345678"

    @pytest.mark.parametrize("number", [0, -1, 100_000_000])
    def test_out_of_range(self, number):
        with pytest.raises(ValueError):
            format_folio(DocumentKind.ORDER, number)

    def test_number_round_trip(self):
        assert folio_number("ORD-00000042") == 42


class TestFolioValidation:

    @pytest.mark.parametrize(
        "folio, kind, expected",
        [
            ("COT-00000001", DocumentKind.QUOTATION, True),
            ("ORD-00000001", DocumentKind.ORDER, True),
            ("ORD-00000001", DocumentKind.QUOTATION, False),
            ("COT-0000001", DocumentKind.QUOTATION, False),
            ("COT-000000001", DocumentKind.QUOTATION, False),
            ("cot-00000001", DocumentKind.QUOTATION, False),
            ("ORD-0000000A", DocumentKind.ORDER, False),
            ("ORD-00000001\n", DocumentKind.ORDER, False),
            ("", DocumentKind.ORDER, False),
        ],
    )
    def test_patterns(self, folio, kind, expected):
        assert is_valid_folio(folio, kind) is expected

    def test_non_ascii_digits_rejected(self):
        assert not is_valid_folio("ORD-٠٠٠٠٠٠٠١", DocumentKind.ORDER)
