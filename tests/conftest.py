"""
Pytest fixtures for the quotation kernel test suite.

Provides:
- A file-backed SQLite database per test (real commits, real locking)
- Per-test session, store and deterministic clock
- Seeded reference data (users, companies, tax configuration)
- A builder that walks quotations through the state machine
- Captured structured logs

Environment Variables:
- DATABASE_URL is NOT used here.  Tests always run against a temporary
  SQLite file so that concurrency tests get real cross-connection locking.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Callable, Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from quote_kernel.db.engine import (
    create_kernel_engine,
    create_session_factory,
    create_tables,
    session_scope,
)
from quote_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from quote_kernel.domain.clock import DeterministicClock
from quote_kernel.domain.dtos import DocumentData, LineInput
from quote_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from quote_kernel.models.reference import CompanyModel, TaxConfigurationModel, UserModel
from quote_kernel.services.document_store import SqlDocumentStore
from quote_kernel.services.quotation_service import QuotationService
from quote_kernel.services.status_service import StatusService


# Lines whose totals are 1350.00 / 216.00 / 1566.00
SCENARIO_LINES = (
    LineInput(
        product_code="CAB-100",
        product_name="Cable THW 12",
        quantity=Decimal("5"),
        unit_price=Decimal("150.00"),
        tax_rate=Decimal("0.16"),
    ),
    LineInput(
        product_code="INT-200",
        product_name="Interruptor sencillo",
        quantity=Decimal("2"),
        unit_price=Decimal("300.00"),
        tax_rate=Decimal("0.16"),
    ),
)

# Status path from draft to each reachable status
_QUOTATION_PATHS: dict[str, tuple[str, ...]] = {
    "draft": (),
    "generated": ("generated",),
    "under_review": ("generated", "under_review"),
    "approved": ("generated", "under_review", "approved"),
    "rejected": ("generated", "under_review", "rejected"),
}


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture quote_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.convert(...)
            logs = captured_logs()
            assert any(r["message"] == "conversion_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("quote_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    """Immutability listeners stay registered for the whole suite."""
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database file per test.

    Pool is large enough for the concurrency tests.
    """
    eng = create_kernel_engine(
        f"sqlite:///{tmp_path / 'quote_kernel.db'}",
        pool_size=20,
        max_overflow=20,
        busy_timeout_ms=30000,
    )
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    sess = session_factory()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


@pytest.fixture
def clock() -> DeterministicClock:
    """Fixed at 2024-01-01 12:00 UTC."""
    return DeterministicClock()


@pytest.fixture
def store(session, clock) -> SqlDocumentStore:
    return SqlDocumentStore(session, clock, default_timeout_seconds=5)


# =============================================================================
# Reference data
# =============================================================================


@dataclass(frozen=True)
class ReferenceData:
    admin_id: str
    client_id: str
    active_company_id: str
    inactive_company_id: str
    default_tax_id: str
    inactive_tax_id: str


@pytest.fixture
def ref(session_factory) -> ReferenceData:
    """Users, companies and tax configurations every test can rely on."""
    with session_scope(session_factory) as sess:
        admin = UserModel(email="admin@example.com", full_name="Admin", role="admin")
        client = UserModel(email="client@example.com", full_name="Cliente", role="client")
        active = CompanyModel(name="Constructora Norte", status="active")
        inactive = CompanyModel(name="Ferreteria Sur", status="inactive")
        iva = TaxConfigurationModel(
            name="IVA 16%", kind="percentage", rate=Decimal("0.16"),
            is_default=True, is_active=True,
        )
        old_tax = TaxConfigurationModel(
            name="IVA 11%", kind="percentage", rate=Decimal("0.11"),
            is_default=False, is_active=False,
        )
        sess.add_all([admin, client, active, inactive, iva, old_tax])
        sess.flush()
        data = ReferenceData(
            admin_id=str(admin.id),
            client_id=str(client.id),
            active_company_id=str(active.id),
            inactive_company_id=str(inactive.id),
            default_tax_id=str(iva.id),
            inactive_tax_id=str(old_tax.id),
        )
    return data


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def scenario_lines() -> list[LineInput]:
    """Two lines totalling 1350.00 + 216.00 IVA = 1566.00."""
    return list(SCENARIO_LINES)


@pytest.fixture
def quotation_service(store, clock) -> QuotationService:
    return QuotationService(store, clock)


@pytest.fixture
def status_service(store, clock) -> StatusService:
    return StatusService(store, clock)


@pytest.fixture
def make_quotation(
    store, ref, quotation_service, status_service,
) -> Callable[..., DocumentData]:
    """
    Create a quotation and walk it to ``status`` through the state machine.

    Usage::

        quotation = make_quotation(status="approved")
        quotation = make_quotation(lines=[...], company_id=ref.inactive_company_id)
    """

    def _make(
        status: str = "approved",
        lines=SCENARIO_LINES,
        company_id: str | None = None,
        issue_date: date | None = None,
        validity_days: int | None = 30,
        discount: Decimal = Decimal("0"),
    ) -> DocumentData:
        quotation = quotation_service.create_quotation(
            company_id or ref.active_company_id,
            ref.admin_id,
            list(lines),
            issue_date=issue_date,
            validity_days=validity_days,
            discount=discount,
            contact_name="Ing. Ramirez",
            contact_email="compras@example.com",
        )
        for step in _QUOTATION_PATHS[status]:
            status_service.update_quotation_status(quotation.id, step, ref.admin_id)
        with store.transaction():
            return store.get_document(quotation.id)

    return _make
