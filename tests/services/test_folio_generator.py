"""
Tests for FolioGenerator and the locked folio counter.

Verifies:
- Sequential COT-/ORD- numbering per kind, independent counters
- Reservation rolls back with the surrounding transaction
- Numbers already taken (imported documents) are skipped
- Malformed folios and exhausted collisions raise FolioGenerationFailedError
"""

from datetime import date
from decimal import Decimal

import pytest

from quote_kernel.domain.dtos import DocumentHeader, DocumentKind
from quote_kernel.exceptions import FolioGenerationFailedError
from quote_kernel.services.folio_generator import FolioGenerator


def _insert_bare_order(store, folio, ref):
    """An order inserted with a hand-picked folio, bypassing the counter."""
    with store.transaction():
        return store.insert_order_with_items(
            DocumentHeader(
                folio=folio,
                kind=DocumentKind.ORDER,
                status="pending",
                company_id=ref.active_company_id,
                issue_date=date(2024, 1, 1),
                subtotal=Decimal("0"),
                tax_amount=Decimal("0"),
                discount=Decimal("0"),
                total=Decimal("0"),
                created_by=ref.admin_id,
            ),
            [],
        )


class TestSequence:

    def test_quotation_folios_are_sequential(self, store):
        generator = FolioGenerator(store)
        with store.transaction():
            first = generator.generate(DocumentKind.QUOTATION)
            second = generator.generate(DocumentKind.QUOTATION)
        assert (first, second) == ("COT-00000001", "COT-00000002")

    def test_kinds_have_independent_counters(self, store):
        generator = FolioGenerator(store)
        with store.transaction():
            quotation = generator.generate("quotation")
            order = generator.generate("order")
        assert quotation == "COT-00000001"
        assert order == "ORD-00000001"

    def test_reservation_rolls_back_with_transaction(self, store):
        generator = FolioGenerator(store)
        with pytest.raises(RuntimeError):
            with store.transaction():
                generator.generate(DocumentKind.ORDER)
                raise RuntimeError("abort")

        with store.transaction():
            assert generator.generate(DocumentKind.ORDER) == "ORD-00000001"

    def test_sequence_survives_commits(self, store):
        generator = FolioGenerator(store)
        for expected in ("ORD-00000001", "ORD-00000002", "ORD-00000003"):
            with store.transaction():
                assert generator.generate(DocumentKind.ORDER) == expected

    def test_logs_reservation(self, store, captured_logs):
        with store.transaction():
            FolioGenerator(store).generate(DocumentKind.ORDER)
        reserved = [r for r in captured_logs() if r["message"] == "folio_reserved"]
        assert reserved[0]["folio"] == "ORD-00000001"
        assert reserved[0]["kind"] == "order"


class TestCollisions:

    def test_taken_number_is_skipped(self, store, ref, captured_logs):
        _insert_bare_order(store, "ORD-00000001", ref)

        with store.transaction():
            folio = FolioGenerator(store).generate(DocumentKind.ORDER)

        assert folio == "ORD-00000002"
        collisions = [r for r in captured_logs() if r["message"] == "folio_collision"]
        assert collisions[0]["folio"] == "ORD-00000001"
        assert collisions[0]["existing_kind"] == "order"

    def test_exhausted_collisions_raise(self, store, ref):
        for number in (1, 2):
            _insert_bare_order(store, f"ORD-{number:08d}", ref)

        with pytest.raises(FolioGenerationFailedError) as exc_info:
            with store.transaction():
                FolioGenerator(store, max_collisions=2).generate(DocumentKind.ORDER)

        assert exc_info.value.folio == "ORD-00000002"
        assert exc_info.value.reason == "Folio ORD-00000002 already exists for order"

    def test_max_collisions_must_be_positive(self, store):
        with pytest.raises(ValueError):
            FolioGenerator(store, max_collisions=0)


class MalformedStore:
    """Minimal DocumentStore stand-in that hands out a broken folio."""

    def reserve_folio(self, kind):
        return "ORD-12"

    def find_folio_kind(self, folio):
        return None


class TestMalformed:

    def test_malformed_folio_rejected(self, captured_logs):
        with pytest.raises(FolioGenerationFailedError) as exc_info:
            FolioGenerator(MalformedStore()).generate(DocumentKind.ORDER)

        assert exc_info.value.reason == "Order folio must follow format ORD-XXXXXXXX"
        assert exc_info.value.code == "FOLIO_GENERATION_FAILED"
        assert any(r["message"] == "folio_malformed" for r in captured_logs())
