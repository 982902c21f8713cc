"""
Tests for the pure domain DTOs.

Verifies:
- DTOs are frozen
- ValidationResult validity, truthiness and merging
- Item snapshots carry every priced field
"""

from dataclasses import FrozenInstanceError
from datetime import date
from decimal import Decimal

import pytest

from quote_kernel.domain.dtos import (
    DocumentData,
    DocumentItemData,
    DocumentKind,
    LineInput,
    ValidationResult,
)


def _item(**overrides) -> DocumentItemData:
    values = dict(
        id="item-1",
        document_id="doc-1",
        product_code="CAB-100",
        product_name="Cable THW 12",
        unit="metro",
        quantity=Decimal("5.000"),
        unit_price=Decimal("150.00"),
        tax_rate=Decimal("0.1600"),
        subtotal=Decimal("750.00"),
        tax_amount=Decimal("120.00"),
        total=Decimal("870.00"),
        position=1,
    )
    values.update(overrides)
    return DocumentItemData(**values)


class TestImmutability:

    def test_line_input_frozen(self):
        line = LineInput("A", "B", Decimal("1"), Decimal("1"), Decimal("0"))
        with pytest.raises(FrozenInstanceError):
            line.quantity = Decimal("2")

    def test_document_frozen(self):
        doc = DocumentData(
            id="doc-1", folio="COT-00000001", kind=DocumentKind.QUOTATION,
            status="draft", company_id="c", issue_date=date(2024, 1, 1),
            subtotal=Decimal("0"), tax_amount=Decimal("0"), discount=Decimal("0"),
            total=Decimal("0"), created_by="u",
        )
        with pytest.raises(FrozenInstanceError):
            doc.status = "approved"
        assert doc.items == ()
        assert doc.is_quotation and not doc.is_order

    def test_line_input_default_unit(self):
        assert LineInput("A", "B", Decimal("1"), Decimal("1"), Decimal("0")).unit == "pieza"


class TestValidationResult:

    def test_from_messages_derives_validity(self):
        assert ValidationResult.from_messages([]).valid
        assert not ValidationResult.from_messages(["bad"]).valid

    def test_truthiness(self):
        assert ValidationResult.success(["heads up"])
        assert not ValidationResult.from_messages(["bad"])

    def test_warnings_never_invalidate(self):
        result = ValidationResult.success(["a", "b"])
        assert result.valid
        assert result.warnings == ("a", "b")

    def test_merge(self):
        left = ValidationResult.from_messages(["e1"], ["w1"])
        right = ValidationResult.from_messages(["e2"], ["w2"])
        merged = left.merge(right)
        assert not merged.valid
        assert merged.errors == ("e1", "e2")
        assert merged.warnings == ("w1", "w2")

    def test_merge_of_valid_results_is_valid(self):
        assert ValidationResult.success().merge(ValidationResult.success()).valid


class TestItemSnapshot:

    def test_to_draft_copies_priced_fields(self):
        item = _item()
        draft = item.to_draft()
        for name in (
            "product_code", "product_name", "unit", "quantity", "unit_price",
            "tax_rate", "subtotal", "tax_amount", "total", "position",
        ):
            assert getattr(draft, name) == getattr(item, name)

    def test_to_draft_has_no_identity(self):
        draft = _item().to_draft()
        assert not hasattr(draft, "id")
        assert not hasattr(draft, "document_id")
