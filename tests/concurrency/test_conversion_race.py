"""
Conversion and folio races with real multi-connection parallelism.

Every thread builds its own session and store from the shared factory,
waits on a barrier and then fires at the same time.  The SQLite file
database serializes writers exactly like row locks do on PostgreSQL.

Run with: pytest tests/concurrency -v
Skip with: pytest -m "not concurrency"
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest
from sqlalchemy import func, select

from quote_kernel.domain.dtos import DocumentKind
from quote_kernel.models.document import DocumentModel
from quote_kernel.services.conversion_orchestrator import (
    ConversionOrchestrator,
    ConversionStatus,
)
from quote_kernel.services.document_store import SqlDocumentStore
from quote_kernel.services.folio_generator import FolioGenerator
from quote_kernel.services.quotation_service import QuotationService

pytestmark = pytest.mark.concurrency

NUM_THREADS = 8


def _run_concurrently(session_factory, clock, work):
    """Run ``work(store, index)`` on NUM_THREADS threads released together."""
    barrier = Barrier(NUM_THREADS, timeout=30)

    def _worker(index):
        session = session_factory()
        try:
            store = SqlDocumentStore(session, clock, default_timeout_seconds=30)
            barrier.wait()
            return work(store, index)
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=NUM_THREADS) as pool:
        return list(pool.map(_worker, range(NUM_THREADS)))


class TestConcurrentConversion:

    def test_exactly_one_order_per_quotation(
        self, session_factory, session, clock, make_quotation, ref,
    ):
        quotation = make_quotation(status="approved")

        results = _run_concurrently(
            session_factory, clock,
            lambda store, _: ConversionOrchestrator(store, clock).convert(
                quotation.id, ref.admin_id,
            ),
        )

        statuses = [r.status for r in results]
        assert statuses.count(ConversionStatus.CONVERTED) == 1
        assert statuses.count(ConversionStatus.ALREADY_CONVERTED) == NUM_THREADS - 1
        assert len({r.order.id for r in results}) == 1

        orders = session.execute(
            select(func.count())
            .select_from(DocumentModel)
            .where(DocumentModel.quotation_id == quotation.id)
        ).scalar_one()
        assert orders == 1
        session.rollback()

    def test_distinct_quotations_get_distinct_folios(
        self, session_factory, store, clock, make_quotation, ref,
    ):
        ids = [make_quotation(status="approved").id for _ in range(NUM_THREADS)]

        def _convert(thread_store, index):
            return ConversionOrchestrator(thread_store, clock).convert(
                ids[index], ref.admin_id,
            )

        results = _run_concurrently(session_factory, clock, _convert)

        assert all(r.status == ConversionStatus.CONVERTED for r in results)
        folios = sorted(r.order.folio for r in results)
        assert folios == [f"ORD-{n:08d}" for n in range(1, NUM_THREADS + 1)]


class TestConcurrentFolios:

    def test_no_duplicate_folios(self, session_factory, clock):
        def _reserve(store, _):
            with store.transaction():
                return FolioGenerator(store).generate(DocumentKind.QUOTATION)

        folios = _run_concurrently(session_factory, clock, _reserve)

        assert len(set(folios)) == NUM_THREADS
        assert sorted(folios) == [f"COT-{n:08d}" for n in range(1, NUM_THREADS + 1)]

    def test_concurrent_quotation_creation(
        self, session_factory, clock, ref, scenario_lines,
    ):
        results = _run_concurrently(
            session_factory, clock,
            lambda store, _: QuotationService(store, clock).create_quotation(
                ref.active_company_id, ref.admin_id, scenario_lines,
            ),
        )
        assert len({q.folio for q in results}) == NUM_THREADS
